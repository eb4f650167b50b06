# smartcities/config.py
import os

from dotenv import load_dotenv

# Chargement .env en local (pas sur Render/Prod)
if os.getenv("RENDER") is None and os.getenv("ENV", "dev") == "dev":
    load_dotenv()

ENV = os.getenv("ENV", "dev")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

# --------- Base de données ----------
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite+aiosqlite:///./smartcities.db").strip()
# create_all au démarrage (dev / tests). En prod le schéma est géré à part.
DB_AUTO_CREATE = os.getenv("DB_AUTO_CREATE", "1") != "0"
# Connecteur asyncpg forcé en IPv4 + SSL (Supabase direct 5432)
DB_FORCE_IPV4 = os.getenv("DB_FORCE_IPV4", "0") == "1"

# --------- Sécurité ----------
ADMIN_TOKEN = (os.getenv("ADMIN_TOKEN") or "").strip()
# Surcharge via ALLOWED_ORIGINS="https://foo.app,https://bar.com"
ALLOWED_ORIGINS = [o.strip() for o in (os.getenv("ALLOWED_ORIGINS") or "").split(",") if o.strip()]

# --------- Proximité ----------
# Rayon unique pour commenter un signalement (mètres)
COMMENT_RADIUS_M = float(os.getenv("COMMENT_RADIUS_M", "150"))
# ≈ 0.05° autour de la position
MAP_NEARBY_RADIUS_KM = float(os.getenv("MAP_NEARBY_RADIUS_KM", "5.55"))
# ≈ 0.1° autour de la position
STATS_LOCATION_RADIUS_KM = float(os.getenv("STATS_LOCATION_RADIUS_KM", "11.1"))
SUBSCRIPTION_DEFAULT_RADIUS_KM = float(os.getenv("SUBSCRIPTION_DEFAULT_RADIUS_KM", "11.1"))
# rayon max d'un abonnement : sert aussi de boîte de pré-filtre
SUBSCRIPTION_MAX_RADIUS_KM = float(os.getenv("SUBSCRIPTION_MAX_RADIUS_KM", "50"))

# --------- Mail (Mailjet) ----------
MAILJET_API_KEY = os.getenv("MAILJET_API_KEY", "")
MAILJET_SECRET_KEY = os.getenv("MAILJET_SECRET_KEY", "")
MAILJET_SENDER_EMAIL = os.getenv("MAILJET_SENDER_EMAIL", "no-reply@smartcities.local")
MODERATION_EMAIL = os.getenv("MODERATION_EMAIL", "moderation@smartcities.local")
