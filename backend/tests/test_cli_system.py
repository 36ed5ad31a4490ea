# Overview: Pytest coverage for CLI commands, the health endpoint and CORS headers.

from datetime import timedelta

from rpbiz.models import Business, IdentitySession, InvoiceSequence
from rpbiz.services import identity_service
from rpbiz.time_utils import utcnow


class TestCli:

    def test_businesses_list(self, app, business):
        result = app.test_cli_runner().invoke(args=["businesses", "list"])
        assert result.exit_code == 0
        assert "Benny's Motorworks" in result.output

    def test_rotate_key(self, app, db_session, business):
        old_key = business.api_key
        result = app.test_cli_runner().invoke(args=["businesses", "rotate-key", str(business.id)])
        assert result.exit_code == 0
        db_session.expire_all()
        assert db_session.get(Business, business.id).api_key != old_key

    def test_rotate_key_missing_business(self, app, db_session):
        result = app.test_cli_runner().invoke(args=["businesses", "rotate-key", "99999"])
        assert result.exit_code != 0

    def test_init_db_backfills_sequences(self, app, db_session, business):
        db_session.query(InvoiceSequence).delete()
        db_session.commit()
        result = app.test_cli_runner().invoke(args=["system", "init-db"])
        assert result.exit_code == 0
        assert db_session.query(InvoiceSequence).filter_by(business_id=business.id).count() == 1

    def test_sessions_cleanup(self, app, db_session, owner, identity_provider):
        identity_service.resolve_identity("owner-token")
        db_session.query(IdentitySession).update({"expires_at": utcnow() - timedelta(minutes=5)})
        db_session.commit()

        result = app.test_cli_runner().invoke(args=["sessions", "cleanup"])
        assert result.exit_code == 0
        assert "Deleted 1" in result.output
        assert db_session.query(IdentitySession).count() == 0


class TestSystem:

    def test_health(self, client, db_session):
        resp = client.get("/api/health")
        assert resp.status_code == 200
        body = resp.get_json()
        assert body["status"] == "healthy"
        assert body["checks"]["database"]["status"] == "healthy"

    def test_cors_allowed_origin(self, client, db_session):
        resp = client.get("/api/health", headers={"Origin": "http://localhost:5173"})
        assert resp.headers["Access-Control-Allow-Origin"] == "http://localhost:5173"

    def test_cors_unknown_origin(self, client, db_session):
        resp = client.get("/api/health", headers={"Origin": "https://evil.test"})
        assert "Access-Control-Allow-Origin" not in resp.headers
