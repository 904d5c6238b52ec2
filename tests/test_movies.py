from datetime import date
from urllib.parse import parse_qs, urlparse

import pytest

from cinestream.services import MediaService


def _movie_body(**overrides):
    body = {
        "title": "Night Train",
        "description": "A courier misses her stop.",
        "synopsis": "A courier falls asleep on the last train and wakes up somewhere else.",
        "releaseDate": "2021-06-04",
        "duration": 95,
        "genre": ["Thriller"],
        "director": "Olga Brun",
        "poster": "https://img.example.com/night.jpg",
        "videoUrl": "https://cdn.example.com/night.mp4",
        "mediaId": "night_train",
        "tags": ["Noir", " Trains "],
        "mediaMetadata": {"width": 1920, "height": 1080, "format": "mp4"},
    }
    body.update(overrides)
    return body


def test_pagination_over_fifteen_movies(client, make_movie):
    for _ in range(15):
        make_movie()

    first = client.get("/api/movies?limit=10&page=1").get_json()
    second = client.get("/api/movies?limit=10&page=2").get_json()

    assert len(first["data"]) == 10
    assert first["pagination"]["hasNextPage"] is True
    assert first["pagination"]["hasPrevPage"] is False
    assert first["pagination"]["totalPages"] == 2
    assert len(second["data"]) == 5
    assert second["pagination"]["hasNextPage"] is False
    assert second["pagination"]["hasPrevPage"] is True
    assert {m["id"] for m in first["data"]}.isdisjoint({m["id"] for m in second["data"]})


def test_list_defaults_and_clamping(client, make_movie):
    make_movie()

    default = client.get("/api/movies").get_json()["pagination"]
    clamped = client.get("/api/movies?limit=1000&page=0").get_json()["pagination"]

    assert default["itemsPerPage"] == 20
    assert clamped["itemsPerPage"] == 100
    assert clamped["currentPage"] == 1


def test_list_hides_inactive_movies(client, make_movie):
    visible = make_movie()
    make_movie(is_active=False)

    data = client.get("/api/movies").get_json()["data"]

    assert [m["id"] for m in data] == [visible]


def test_list_filters(client, make_movie):
    thriller = make_movie(genre=["Thriller", "Drama"], director="Olga Brun", language="es",
                          release_date=date(2019, 3, 1))
    make_movie(genre=["Comedy"], director="Sam Hill", release_date=date(2021, 3, 1))

    def ids(query):
        return [m["id"] for m in client.get(f"/api/movies?{query}").get_json()["data"]]

    assert ids("genre=Thriller") == [thriller]
    assert ids("genre=Thriller&genre=Horror") == [thriller]
    assert ids("director=olga") == [thriller]
    assert ids("language=es") == [thriller]
    assert ids("releaseYear=2019") == [thriller]


@pytest.mark.parametrize("year", ["0", "-5", "10000"])
def test_list_rejects_out_of_range_year(client, year):
    resp = client.get(f"/api/movies?releaseYear={year}")

    assert resp.status_code == 400
    assert resp.get_json()["message"] == "releaseYear must be a valid year"


def test_list_min_rating_and_sorting(client, make_movie):
    low = make_movie(title="Alpha", rating_average=2.0)
    high = make_movie(title="Beta", rating_average=4.5)

    assert [m["id"] for m in client.get("/api/movies?minRating=4").get_json()["data"]] == [high]
    titles = [m["title"] for m in client.get("/api/movies?sort=title&order=asc").get_json()["data"]]
    assert titles == ["Alpha", "Beta"]
    by_rating = [m["id"] for m in client.get("/api/movies?sort=rating&order=desc").get_json()["data"]]
    assert by_rating == [high, low]


def test_search(client, make_movie):
    match = make_movie(synopsis="A lighthouse keeper hears voices in the FOG.")
    make_movie(synopsis="Two chefs open a restaurant.")

    resp = client.get("/api/movies/search?q=fog")

    assert resp.status_code == 200
    assert [m["id"] for m in resp.get_json()["data"]] == [match]


def test_search_requires_query(client):
    resp = client.get("/api/movies/search")

    assert resp.status_code == 400
    assert resp.get_json()["message"] == "Search query is required"


def test_trending_orders_by_views(client, make_movie):
    quiet = make_movie(views=3)
    busy = make_movie(views=50)
    tied_better = make_movie(views=3, rating_average=4.0)

    data = client.get("/api/movies/trending?limit=3").get_json()["data"]

    assert [m["id"] for m in data] == [busy, tied_better, quiet]


def test_get_movie_counts_views(client, movie):
    assert client.get(f"/api/movies/{movie}").get_json()["data"]["views"] == 1
    assert client.get(f"/api/movies/{movie}").get_json()["data"]["views"] == 2


def test_get_missing_or_inactive_movie(client, make_movie):
    hidden = make_movie(is_active=False)

    assert client.get("/api/movies/999").status_code == 404
    resp = client.get(f"/api/movies/{hidden}")
    assert resp.status_code == 404
    assert resp.get_json()["message"] == "Movie not found"


def test_create_movie_as_admin(client, admin):
    resp = client.post("/api/movies", json=_movie_body(), headers=admin.headers)

    assert resp.status_code == 201
    data = resp.get_json()["data"]
    assert data["title"] == "Night Train"
    assert data["releaseDate"] == "2021-06-04"
    assert data["tags"] == ["noir", "trains"]
    assert data["formattedDuration"] == "1h 35m"
    assert data["rating"] == {
        "average": 0,
        "count": 0,
        "distribution": {"1": 0, "2": 0, "3": 0, "4": 0, "5": 0},
    }


def test_create_movie_requires_admin(client, user):
    assert client.post("/api/movies", json=_movie_body()).status_code == 401

    resp = client.post("/api/movies", json=_movie_body(), headers=user.headers)
    assert resp.status_code == 403
    assert resp.get_json()["message"] == "Admin access required"


def test_create_movie_validation(client, admin):
    resp = client.post("/api/movies", json=_movie_body(genre=[]), headers=admin.headers)
    assert resp.status_code == 400
    assert resp.get_json()["message"] == "At least one genre is required"

    resp = client.post("/api/movies", json=_movie_body(poster="not a url"), headers=admin.headers)
    assert resp.status_code == 400
    assert resp.get_json()["message"] == "Poster must be a valid URL"


def test_update_movie_is_partial(client, admin, movie):
    resp = client.put(f"/api/movies/{movie}", json={"title": "Renamed", "genre": ["Horror"]}, headers=admin.headers)

    assert resp.status_code == 200
    data = resp.get_json()["data"]
    assert data["title"] == "Renamed"
    assert data["genre"] == ["Horror"]
    assert data["director"] == "Jane Doe"


def test_delete_movie_is_soft(client, admin, movie):
    resp = client.delete(f"/api/movies/{movie}", headers=admin.headers)

    assert resp.status_code == 200
    assert client.get(f"/api/movies/{movie}").status_code == 404
    assert client.get("/api/movies").get_json()["data"] == []


def test_signed_video_url(client, settings, movie):
    resp = client.get(f"/api/movies/{movie}/video?duration=600&width=1280&quality=hd")

    assert resp.status_code == 200
    data = resp.get_json()["data"]
    assert data["expiresIn"] == 600
    assert data["movieId"] == movie

    url = urlparse(data["videoUrl"])
    params = parse_qs(url.query)
    assert url.path.endswith("/q_hd,w_1280/media_1.mp4")
    path = url.path[len(urlparse(settings.media_base_url).path):]
    assert MediaService(settings).verify(path, params["expires"][0], params["signature"][0])


def test_video_missing_media(client, make_movie):
    movie_id = make_movie(media_id="")

    resp = client.get(f"/api/movies/{movie_id}/video")

    assert resp.status_code == 404
    assert resp.get_json()["message"] == "Video not available for this movie"


def test_video_info(client, make_movie):
    movie_id = make_movie(duration=90, media_metadata={"width": 1920, "height": 1080})

    data = client.get(f"/api/movies/{movie_id}/video/info").get_json()["data"]

    assert data["duration"] == 5400
    assert data["width"] == 1920
    assert data["height"] == 1080
    assert data["format"] == "mp4"


def test_health_and_unknown_route(client):
    assert client.get("/health").get_json()["success"] is True

    resp = client.get("/api/nothing-here")
    assert resp.status_code == 404
    assert resp.get_json()["message"] == "Route not found"
    assert resp.get_json()["error"] == "Cannot GET /api/nothing-here"
