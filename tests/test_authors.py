from datetime import date

from data_models import db, Author, Book


def test_author_list_sorted_by_family_name(client, make_author):
    make_author(first_name="Mary", family_name="Shelley")
    make_author(first_name="Jane", family_name="Austen")

    response = client.get("/catalog/authors")

    assert response.status_code == 200
    body = response.get_data(as_text=True)
    assert body.index("Austen, Jane") < body.index("Shelley, Mary")


def test_create_then_detail_round_trip(app, client):
    response = client.post("/catalog/author/create", data={
        "first_name": "Jane",
        "family_name": "Austen",
        "date_of_birth": "1775-12-16",
        "date_of_death": "",
    })

    assert response.status_code == 302
    location = response.headers["Location"]
    assert location.startswith("/catalog/author/")

    detail = client.get(location)
    assert detail.status_code == 200
    assert "Austen, Jane" in detail.get_data(as_text=True)
    assert "Dec 16, 1775 - " in detail.get_data(as_text=True)

    with app.app_context():
        author = db.session.get(Author, int(location.rsplit("/", 1)[1]))
        assert author.name == "Austen, Jane"
        assert author.date_of_birth_yyyy_mm_dd == "1775-12-16"
        assert author.date_of_death is None


def test_create_with_errors_redisplays_form(client, count):
    response = client.post("/catalog/author/create", data={
        "first_name": "  Jane ",
        "family_name": "",
        "date_of_birth": "yesterday",
    })

    assert response.status_code == 200
    body = response.get_data(as_text=True)
    assert "Family name must be specified." in body
    assert "Invalid date of birth." in body
    assert 'value="Jane"' in body
    assert count(Author) == 0


def test_overlong_name_is_rejected_by_the_model(client, count):
    response = client.post("/catalog/author/create", data={
        "first_name": "x" * 101,
        "family_name": "Austen",
    })

    assert response.status_code == 400
    assert count(Author) == 0


def test_detail_of_missing_author_is_404(client):
    response = client.get("/catalog/author/999")

    assert response.status_code == 404
    assert "No authors found." in response.get_data(as_text=True)


def test_detail_lists_author_books(client, make_author, make_book):
    author_id = make_author()
    make_book(title="Emma", author_id=author_id, summary="Matchmaking in Highbury.")

    body = client.get(f"/catalog/author/{author_id}").get_data(as_text=True)

    assert "Emma" in body
    assert "Matchmaking in Highbury." in body


def test_delete_get_missing_author_redirects_to_list(client):
    response = client.get("/catalog/author/999/delete")

    assert response.status_code == 302
    assert response.headers["Location"] == "/catalog/authors"


def test_delete_author_without_books(client, make_author, count):
    author_id = make_author()

    confirm = client.get(f"/catalog/author/{author_id}/delete")
    assert "Do you really want to delete this Author?" in confirm.get_data(as_text=True)

    response = client.post(f"/catalog/author/{author_id}/delete")

    assert response.status_code == 302
    assert response.headers["Location"] == "/catalog/authors"
    assert count(Author) == 0
    assert client.get(f"/catalog/author/{author_id}").status_code == 404


def test_delete_author_with_books_is_refused(client, make_author, make_book, count):
    author_id = make_author()
    make_book(title="Emma", author_id=author_id)

    response = client.post(f"/catalog/author/{author_id}/delete")

    assert response.status_code == 200
    body = response.get_data(as_text=True)
    assert "Delete the following books" in body
    assert "Emma" in body
    assert count(Author) == 1
    assert count(Book) == 1


def test_update_get_prefills_form(client, make_author):
    author_id = make_author(date_of_birth=date(1775, 12, 16))

    body = client.get(f"/catalog/author/{author_id}/update").get_data(as_text=True)

    assert 'value="Jane"' in body
    assert 'value="1775-12-16"' in body


def test_update_get_missing_author_is_404(client):
    assert client.get("/catalog/author/999/update").status_code == 404


def test_update_keeps_id_and_is_idempotent(app, client, make_author, count):
    author_id = make_author()
    form = {"first_name": "Mary", "family_name": "Shelley",
            "date_of_birth": "1797-08-30", "date_of_death": "1851-02-01"}

    def snapshot():
        with app.app_context():
            author = db.session.get(Author, author_id)
            return (author.id, author.first_name, author.family_name,
                    author.date_of_birth, author.date_of_death)

    first = client.post(f"/catalog/author/{author_id}/update", data=form)
    after_once = snapshot()
    second = client.post(f"/catalog/author/{author_id}/update", data=form)

    assert first.status_code == second.status_code == 302
    assert first.headers["Location"] == f"/catalog/author/{author_id}"
    assert snapshot() == after_once == (author_id, "Mary", "Shelley",
                                        date(1797, 8, 30), date(1851, 2, 1))
    assert count(Author) == 1


def test_update_with_errors_leaves_record_alone(app, client, make_author):
    author_id = make_author()

    response = client.post(f"/catalog/author/{author_id}/update",
                           data={"first_name": "", "family_name": "Shelley"})

    assert response.status_code == 200
    assert "First name must be specified." in response.get_data(as_text=True)
    with app.app_context():
        assert db.session.get(Author, author_id).family_name == "Austen"


def test_markup_is_escaped_before_storage(app, client):
    response = client.post("/catalog/author/create",
                           data={"first_name": "<b>Jo</b>", "family_name": "March"})

    with app.app_context():
        author = db.session.get(Author, int(response.headers["Location"].rsplit("/", 1)[1]))
        assert author.first_name == "&lt;b&gt;Jo&lt;/b&gt;"
