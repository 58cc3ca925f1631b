import re
from urllib.parse import urlsplit

from app.staffpanel.devices import is_suspicious_login, parse_user_agent
from app.staffpanel.models import LoginInfo, StaffUser

CHROME_WINDOWS = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)
SAFARI_IPHONE = (
    "Mozilla/5.0 (iPhone; CPU iPhone OS 17_0 like Mac OS X) AppleWebKit/605.1.15 "
    "(KHTML, like Gecko) Version/17.0 Mobile/15E148 Safari/604.1"
)


def _user(*infos):
    user = StaffUser(name="Test", email="t@example.com", password_hash="x")
    user.login_infos = list(infos)
    return user


def test_parse_user_agent_desktop():
    info = parse_user_agent(CHROME_WINDOWS)
    assert info["device_type"] == "desktop"
    assert info["browser"] == "Chrome"
    assert info["platform"] == "Windows"
    assert info["is_mobile"] is False


def test_parse_user_agent_mobile():
    info = parse_user_agent(SAFARI_IPHONE)
    assert info["device_type"] == "mobile"
    assert info["is_mobile"] is True


def test_parse_user_agent_missing():
    assert parse_user_agent(None)["device_type"] == "unknown"


def test_first_login_is_suspicious():
    assert is_suspicious_login(_user(), "10.0.0.1", CHROME_WINDOWS)


def test_known_device_is_not_suspicious():
    user = _user(LoginInfo(ip_address="10.0.0.1", user_agent=CHROME_WINDOWS, is_trusted=False))
    assert not is_suspicious_login(user, "10.0.0.1", CHROME_WINDOWS)
    assert is_suspicious_login(user, "10.0.0.2", CHROME_WINDOWS)
    assert is_suspicious_login(user, "10.0.0.1", SAFARI_IPHONE)


def test_trusted_device_is_not_suspicious_from_new_ip():
    user = _user(LoginInfo(ip_address="10.0.0.1", user_agent=CHROME_WINDOWS, is_trusted=True))
    assert not is_suspicious_login(user, "192.168.1.20", CHROME_WINDOWS)
    assert is_suspicious_login(user, "192.168.1.20", SAFARI_IPHONE)


def test_missing_ip_or_agent_is_suspicious():
    user = _user(LoginInfo(ip_address="10.0.0.1", user_agent=CHROME_WINDOWS, is_trusted=True))
    assert is_suspicious_login(user, None, CHROME_WINDOWS)
    assert is_suspicious_login(user, "10.0.0.1", None)


def _alerts(outbox):
    return [m for m in outbox if m.subject == "Security alert: new device detected"]


def test_new_device_login_sends_alert_once(client, login, csrf, outbox, db):
    headers = {"User-Agent": CHROME_WINDOWS}
    client.post("/internal/login", data={"email": "admin@example.com", "password": "Secret-pass1"}, headers=headers)
    assert len(_alerts(outbox)) == 1

    client.post("/internal/logout", headers=headers)
    client.post("/internal/login", data={"email": "admin@example.com", "password": "Secret-pass1"}, headers=headers)
    assert len(_alerts(outbox)) == 1

    infos = db.query(LoginInfo).all()
    assert len(infos) == 1
    assert infos[0].login_count == 2
    assert infos[0].browser == "Chrome"


def test_trust_device_link(client, login, outbox, db):
    login("admin@example.com")
    alert = _alerts(outbox)[0]
    trust_url = next(u for u in re.findall(r"https?://\S+", alert.body) if "/trust-device/" in u)
    parts = urlsplit(trust_url)

    r = client.get(f"{parts.path}?{parts.query}")
    assert r.status_code == 302
    assert r.headers["Location"].endswith("/internal/dashboard")
    db.rollback()
    assert db.query(LoginInfo).one().is_trusted is True


def test_trust_device_rejects_unsigned_link(client, login, db):
    login("admin@example.com")
    info_id = db.query(LoginInfo).one().id
    r = client.get(f"/internal/trust-device/{info_id}")
    assert r.status_code == 403
    assert db.query(LoginInfo).one().is_trusted is False


def test_dashboard_shows_last_login(client, login):
    client.post(
        "/internal/login",
        data={"email": "admin@example.com", "password": "Secret-pass1"},
        headers={"User-Agent": CHROME_WINDOWS},
    )
    r = client.get("/internal/dashboard", headers={"X-Inertia": "true", "User-Agent": CHROME_WINDOWS})
    last = r.json["props"]["lastLogin"]
    assert last["ip"] == "127.0.0.1"
    assert last["device"] == "Chrome on Windows"
