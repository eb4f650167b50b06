PARIS = (48.8566, 2.3522)
LILLE = (50.6292, 3.0573)


def test_user_stats(client, make_user, make_report, add_vote):
    uid, other = make_user(), make_user()
    mine = make_report(uid)
    theirs = [make_report(other) for _ in range(2)]
    add_vote(theirs[0], uid, "up")
    add_vote(theirs[1], uid, "down")
    add_vote(mine, other, "up")

    body = client.get(f"/stats/user/{uid}").json()
    assert body["number_of_reports"] == 1
    assert body["number_of_votes"] == 2
    assert body["number_of_comments"] == 0
    assert {v["report_id"] for v in body["votes"]} == set(theirs)


def test_user_stats_unknown(client):
    assert client.get("/stats/user/31337").status_code == 404


def test_reports_by_type(client, make_user, make_report):
    uid = make_user()
    wanted = make_report(uid, category="nuisance")
    make_report(uid, category="danger")
    items = client.get("/stats/reports-by-type/nuisance").json()
    assert [it["id"] for it in items] == [wanted]
    assert client.get("/stats/reports-by-type/meteo").status_code == 422


def test_report_by_location_uses_wide_radius(client, make_user, make_report):
    uid = make_user()
    near = make_report(uid, lat=PARIS[0] + 0.09, lng=PARIS[1])   # ~10 km
    make_report(uid, lat=LILLE[0], lng=LILLE[1], city="Lille")
    items = client.get("/stats/report-by-location", params={"latitude": PARIS[0], "longitude": PARIS[1]}).json()
    assert [it["id"] for it in items] == [near]


def test_popular_reports(client, make_user, make_report, add_vote):
    voters = [make_user() for _ in range(3)]
    owner = make_user()
    quiet = make_report(owner)
    hot = make_report(owner)
    warm = make_report(owner)
    for v in voters:
        add_vote(hot, v, "up")
    add_vote(warm, voters[0], "down")

    items = client.get("/stats/popular-reports").json()
    assert [it["id"] for it in items] == [hot, warm, quiet]
    assert items[0]["up_votes"] == 3


def test_city_ranking(client, make_user, make_report, add_vote):
    owner = make_user(city="Lyon")
    busy = make_user(city="Haubourdin", username="busy")
    idle = make_user(city="Haubourdin", username="idle")
    make_user(city="Lille")
    reports = [make_report(owner) for _ in range(2)]
    for rid in reports:
        add_vote(rid, busy, "up")

    ranking = client.get("/stats/ranking", params={"city": "Haubourdin"}).json()
    assert [(r["username"], r["ranking"], r["vote_count"]) for r in ranking] == [
        ("busy", 1, 2),
        ("idle", 2, 0),
    ]
    assert idle == ranking[1]["id"]
    assert client.get("/stats/ranking").status_code == 400


def test_map_markers_and_nearby(client, make_user, make_report):
    uid = make_user()
    close = make_report(uid, lat=PARIS[0] + 0.01, lng=PARIS[1])   # ~1.1 km
    far = make_report(uid, lat=PARIS[0] + 0.06, lng=PARIS[1])     # ~6.7 km

    markers = client.get("/map/reports").json()
    assert {m["id"] for m in markers} == {close, far}

    nearby = client.get("/map/nearby", params={"latitude": PARIS[0], "longitude": PARIS[1]}).json()
    assert [m["id"] for m in nearby] == [close]
    assert 1.0 < nearby[0]["distance_km"] < 1.2
