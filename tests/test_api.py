import uuid

API = "/api/v1"


def _create_author(client, first_name="Ada", last_name="Lovelace"):
    resp = client.post(
        f"{API}/authors", json={"id": str(uuid.uuid4()), "firstName": first_name, "lastName": last_name}
    )
    assert resp.status_code == 201, resp.text
    return resp.json()["author"]


def _create_room(client, *authors, name="general"):
    resp = client.post(f"{API}/rooms", json={"name": name, "members": [{"authorId": a["id"]} for a in authors]})
    assert resp.status_code == 201, resp.text
    return resp.json()["room"]


def _create_message(client, room, author, text="hello"):
    resp = client.post(f"{API}/messages", json={"roomId": room["id"], "authorId": author["id"], "text": text})
    assert resp.status_code == 201, resp.text
    return resp.json()["message"]


def test_health(client):
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.json() == {"status": "ok", "connections": 0}


def test_author_crud_flow(client):
    author_id = str(uuid.uuid4())
    created = client.post(f"{API}/authors", json={"id": author_id, "firstName": "Ada", "lastName": "Lovelace"})
    assert created.status_code == 201
    assert created.headers["location"].endswith(f"/authors/{author_id}")
    body = created.json()["author"]
    assert body["isArchived"] is False
    assert {"createdAt", "updatedAt"} <= set(body)

    fetched = client.get(f"{API}/authors/{author_id}")
    assert fetched.json()["author"]["firstName"] == "Ada"

    updated = client.put(f"{API}/authors/{author_id}", json={"lastName": "King"})
    assert updated.status_code == 200
    assert updated.json()["author"]["lastName"] == "King"
    assert updated.json()["author"]["firstName"] == "Ada"

    archived = client.put(f"{API}/authors/{author_id}/archive")
    assert archived.json()["author"]["isArchived"] is True
    assert client.get(f"{API}/authors").json()["authors"] == []
    assert len(client.get(f"{API}/authors", params={"includeArchived": "true"}).json()["authors"]) == 1

    deleted = client.delete(f"{API}/authors/{author_id}")
    assert deleted.status_code == 200
    assert deleted.json()["author"]["id"] == author_id
    assert client.get(f"{API}/authors/{author_id}").status_code == 404


def test_not_found_shape(client):
    resp = client.get(f"{API}/rooms/{uuid.uuid4()}")
    assert resp.status_code == 404
    assert resp.json() == {"error": {"message": "Room not found."}}


def test_validation_error_shape(client):
    resp = client.post(f"{API}/authors", json={"id": "nope", "firstName": ""})
    assert resp.status_code == 400
    assert resp.json() == {
        "error": {
            "message": "Invalid fields.",
            "fields": {"id": "invalid", "firstName": "required", "lastName": "required"},
        }
    }


def test_request_validation_is_folded_into_error_shape(client):
    resp = client.post(f"{API}/rooms", json={"name": "x", "members": "everyone"})
    assert resp.status_code == 400
    assert resp.json()["error"]["fields"] == {"members": "invalid"}

    resp = client.get(f"{API}/messages", params={"limit": -1})
    assert resp.status_code == 400
    assert resp.json()["error"]["fields"] == {"limit": "invalid"}


def test_duplicate_room_members_rejected(client):
    author = _create_author(client)
    resp = client.post(
        f"{API}/rooms", json={"name": "dup", "members": [{"authorId": author["id"]}, {"authorId": author["id"]}]}
    )
    assert resp.status_code == 400
    assert resp.json()["error"]["fields"]["members"] == "duplicate"


def test_empty_room_can_be_created(client):
    room = _create_room(client)
    assert room["members"] == []
    assert room["isArchived"] is False


def test_room_list_carries_most_recent_message(client):
    author = _create_author(client)
    room = _create_room(client, author)
    _create_message(client, room, author, text="first")
    latest = _create_message(client, room, author, text="second")

    rooms = client.get(f"{API}/rooms", params={"authorId": author["id"]}).json()["rooms"]
    assert [r["id"] for r in rooms] == [room["id"]]
    assert rooms[0]["mostRecentMessage"]["id"] == latest["id"]


def test_message_listing_pages_newest_first(client):
    author = _create_author(client)
    room = _create_room(client, author)
    for index in range(3):
        _create_message(client, room, author, text=f"m{index}")

    first_page = client.get(f"{API}/messages", params={"roomId": room["id"], "limit": 2}).json()["messages"]
    assert [m["text"] for m in first_page] == ["m2", "m1"]

    everything = client.get(f"{API}/messages", params={"roomId": room["id"], "limit": 0}).json()["messages"]
    assert len(everything) == 3


def test_archiving_sole_member_over_rest_archives_room_and_messages(client):
    author = _create_author(client)
    room = _create_room(client, author)
    message = _create_message(client, room, author)

    client.put(f"{API}/authors/{author['id']}/archive")

    assert client.get(f"{API}/rooms/{room['id']}").json()["room"]["isArchived"] is True
    assert client.get(f"{API}/messages/{message['id']}").json()["message"]["isArchived"] is True


def test_deleting_sole_member_over_rest_deletes_room_and_messages(client):
    author = _create_author(client)
    room = _create_room(client, author)
    message = _create_message(client, room, author)

    assert client.delete(f"{API}/authors/{author['id']}").status_code == 200

    assert client.get(f"{API}/rooms/{room['id']}").status_code == 404
    assert client.get(f"{API}/messages/{message['id']}").status_code == 404


def test_room_archive_and_delete_cascade_to_messages(client):
    author = _create_author(client)
    room = _create_room(client, author)
    message = _create_message(client, room, author)

    client.put(f"{API}/rooms/{room['id']}/archive")
    assert client.get(f"{API}/messages/{message['id']}").json()["message"]["isArchived"] is True

    client.delete(f"{API}/rooms/{room['id']}")
    assert client.get(f"{API}/messages/{message['id']}").status_code == 404


def test_websocket_create_message_acks_and_notifies_peer(client):
    a1 = _create_author(client)
    a2 = _create_author(client, "Grace", "Hopper")
    room = _create_room(client, a1, a2)

    with client.websocket_connect(f"/ws?authorId={a2['id']}") as peer:
        with client.websocket_connect(f"/ws?authorId={a1['id']}") as origin:
            origin.send_json(
                {"event": "createMessage", "id": 1, "data": {"roomId": room["id"], "authorId": a1["id"], "text": "hi"}}
            )
            ack = origin.receive_json()
            assert ack["event"] == "ack" and ack["id"] == 1
            assert ack["data"]["message"]["text"] == "hi"

            pushed = peer.receive_json()
            assert pushed["event"] == "messageCreated"
            assert pushed["data"]["message"]["id"] == ack["data"]["message"]["id"]


def test_websocket_join_then_receive_rest_broadcast(client):
    author = _create_author(client)
    room = _create_room(client, author)

    with client.websocket_connect("/ws") as ws:
        ws.send_json({"event": "joinRoom", "data": room["id"]})
        assert ws.receive_json() == {"event": "roomJoined", "data": room["id"]}

        client.put(f"{API}/rooms/{room['id']}", json={"name": "renamed"})
        event = ws.receive_json()
        assert event["event"] == "roomUpdated"
        assert event["data"]["room"]["name"] == "renamed"


def test_websocket_errors_are_acked(client):
    with client.websocket_connect("/ws") as ws:
        ws.send_text("{not json")
        assert ws.receive_json() == {"event": "ack", "id": None, "error": {"message": "Malformed frame."}}

        ws.send_json({"event": "deleteAuthor", "id": "a", "data": {}})
        assert ws.receive_json() == {
            "event": "ack",
            "id": "a",
            "error": {"message": "Invalid field.", "fields": {"id": "required"}},
        }


def test_undecodable_body_is_reported_as_payload(client):
    resp = client.post(f"{API}/authors", content="{not json", headers={"Content-Type": "application/json"})
    assert resp.status_code == 400
    assert resp.json() == {"error": {"message": "Invalid field.", "fields": {"payload": "invalid"}}}


def test_websocket_binary_frame_is_acked_and_connection_survives(client):
    room_id = str(uuid.uuid4())
    with client.websocket_connect("/ws") as ws:
        ws.send_bytes(b"\x00\x01")
        assert ws.receive_json() == {"event": "ack", "id": None, "error": {"message": "Malformed frame."}}

        ws.send_json({"event": "joinRoom", "data": room_id})
        assert ws.receive_json() == {"event": "roomJoined", "data": room_id}
