"""Integration tests for the invitation endpoints."""

import uuid
from datetime import datetime, timedelta, timezone

from sqlalchemy import update

from allowance.models.invitation import Invitation
from allowance.services import invitation_service
from allowance.services.email_service import email_client


async def _invite(client, parent, member, **body):
    resp = await client.post(
        f"/api/v1/members/{member['id']}/invitations", json=body, headers=parent["headers"],
    )
    assert resp.status_code == 201, resp.text
    return resp.json()


async def _expire(db_session, token):
    await db_session.execute(
        update(Invitation)
        .where(Invitation.token == token)
        .values(expires_at=datetime.now(timezone.utc) - timedelta(hours=1))
    )
    db_session.expire_all()


def _accept_body(email=None, password="kidpassword1", confirm=None):
    return {
        "email": email or f"kid-{uuid.uuid4().hex[:8]}@test.de",
        "password": password,
        "password_confirm": confirm or password,
    }


class TestCreateInvitation:
    async def test_link_returned(self, client, registered_parent, child_member):
        data = await _invite(client, registered_parent, child_member)
        assert data["link"].endswith(f"/join?token={data['token']}")
        assert "/join?token=" in data["link"]
        assert email_client.deliveries() == ()

    async def test_mail_sent_when_email_given(self, client, registered_parent, child_member):
        data = await _invite(client, registered_parent, child_member, email="kid@test.de")
        [message] = email_client.deliveries()
        assert message["To"] == "kid@test.de"
        assert data["link"] in message.get_content()

    async def test_active_link(self, client, registered_parent, child_member):
        data = await _invite(client, registered_parent, child_member)
        resp = await client.get(
            f"/api/v1/members/{child_member['id']}/invitations/active",
            headers=registered_parent["headers"],
        )
        assert resp.status_code == 200
        assert resp.json()["token"] == data["token"]

    async def test_no_active_link(self, client, registered_parent, child_member):
        resp = await client.get(
            f"/api/v1/members/{child_member['id']}/invitations/active",
            headers=registered_parent["headers"],
        )
        assert resp.status_code == 404

    async def test_linked_member_cannot_be_invited(self, client, registered_parent):
        resp = await client.post(
            f"/api/v1/members/{registered_parent['member_id']}/invitations",
            json={},
            headers=registered_parent["headers"],
        )
        assert resp.status_code == 409


class TestLookup:
    async def test_details_by_token(self, client, registered_parent, child_member):
        data = await _invite(client, registered_parent, child_member)
        resp = await client.get(f"/api/v1/invitations/{data['token']}")
        assert resp.status_code == 200
        details = resp.json()
        assert details["member_name"] == "Mia"
        assert details["member_role"] == "child"
        assert details["family_member_id"] == child_member["id"]

    async def test_unknown_token(self, client):
        resp = await client.get("/api/v1/invitations/does-not-exist")
        assert resp.status_code == 404

    async def test_expired_token(self, client, db_session, registered_parent, child_member):
        data = await _invite(client, registered_parent, child_member)
        await _expire(db_session, data["token"])
        resp = await client.get(f"/api/v1/invitations/{data['token']}")
        assert resp.status_code == 404


class TestAccept:
    async def test_accept_links_member(self, client, registered_parent, child_member):
        data = await _invite(client, registered_parent, child_member)
        resp = await client.post(f"/api/v1/invitations/{data['token']}/accept", json=_accept_body())
        assert resp.status_code == 200
        session = resp.json()

        headers = {"Authorization": f"Bearer {session['access_token']}"}
        resp = await client.get("/api/v1/auth/session", headers=headers)
        assert resp.json()["family_member"]["id"] == child_member["id"]

        resp = await client.get("/api/v1/families/mine", headers=headers)
        assert resp.json()["id"] == registered_parent["family_id"]

    async def test_token_used_only_once(self, client, registered_parent, child_member):
        data = await _invite(client, registered_parent, child_member)
        first = await client.post(f"/api/v1/invitations/{data['token']}/accept", json=_accept_body())
        assert first.status_code == 200

        second = await client.post(f"/api/v1/invitations/{data['token']}/accept", json=_accept_body())
        assert second.status_code == 422

    async def test_password_mismatch(self, client, registered_parent, child_member):
        data = await _invite(client, registered_parent, child_member)
        resp = await client.post(
            f"/api/v1/invitations/{data['token']}/accept",
            json=_accept_body(password="kidpassword1", confirm="kidpassword2"),
        )
        assert resp.status_code == 422

    async def test_existing_email_conflicts(self, client, registered_parent, child_member):
        data = await _invite(client, registered_parent, child_member)
        resp = await client.post(
            f"/api/v1/invitations/{data['token']}/accept",
            json=_accept_body(email=registered_parent["email"]),
        )
        assert resp.status_code == 409

        # The invitation is still usable after the failed attempt
        resp = await client.get(f"/api/v1/invitations/{data['token']}")
        assert resp.status_code == 200

    async def test_expired_token_rejected(self, client, db_session, registered_parent, child_member):
        data = await _invite(client, registered_parent, child_member)
        await _expire(db_session, data["token"])
        resp = await client.post(f"/api/v1/invitations/{data['token']}/accept", json=_accept_body())
        assert resp.status_code == 422


class TestRegenerate:
    async def test_regenerate_expired(self, client, db_session, registered_parent, child_member):
        data = await _invite(client, registered_parent, child_member)
        await _expire(db_session, data["token"])

        resp = await client.get(
            f"/api/v1/members/{child_member['id']}/invitations/expired",
            headers=registered_parent["headers"],
        )
        [expired] = resp.json()

        resp = await client.post(
            f"/api/v1/invitations/{expired['id']}/regenerate", headers=registered_parent["headers"],
        )
        assert resp.status_code == 200
        fresh = resp.json()
        assert fresh["token"] != data["token"]

        resp = await client.get(f"/api/v1/invitations/{fresh['token']}")
        assert resp.status_code == 200
        resp = await client.get(f"/api/v1/invitations/{data['token']}")
        assert resp.status_code == 404

    async def test_active_invitation_not_regenerated(self, client, db_session, registered_parent, child_member):
        await _invite(client, registered_parent, child_member)
        invitation = await invitation_service.get_active_invitation(db_session, uuid.UUID(child_member["id"]))

        resp = await client.post(
            f"/api/v1/invitations/{invitation.id}/regenerate", headers=registered_parent["headers"],
        )
        assert resp.status_code == 409

    async def test_unknown_invitation(self, client, registered_parent):
        resp = await client.post(
            f"/api/v1/invitations/{uuid.uuid4()}/regenerate", headers=registered_parent["headers"],
        )
        assert resp.status_code == 404

    async def test_active_link_helper(self, client, db_session, registered_parent, child_member):
        data = await _invite(client, registered_parent, child_member)
        result = await invitation_service.get_active_invitation_link(
            db_session, uuid.UUID(child_member["id"]),
        )
        assert result.data == data["link"]
