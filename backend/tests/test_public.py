"""Unauthenticated endpoints: landing-page lead capture and health."""

from resellerpro.extensions import db
from resellerpro.models import LandingLead, SubscriptionPlan


def test_landing_enquiry_saved(client):
    resp = client.post("/api/enquiry", json={
        "name": "Neha Gupta", "whatsapp": "9812345678", "email": "Neha@Example.in", "message": "Pricing?",
    })
    assert resp.status_code == 201
    lead = db.session.get(LandingLead, resp.json["id"])
    assert lead.email == "neha@example.in"


def test_landing_enquiry_requires_fields(client):
    resp = client.post("/api/enquiry", json={"name": "Neha"})
    assert resp.status_code == 400
    assert resp.json["error"] == "Missing required fields"
    assert db.session.query(LandingLead).count() == 0


def test_landing_enquiry_bad_whatsapp(client):
    resp = client.post("/api/enquiry", json={"name": "Neha", "whatsapp": "12ab", "email": "neha@example.in"})
    assert resp.status_code == 400


def test_health(client):
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.json["status"] == "healthy"
    assert resp.json["checks"]["plans"]["details"]["plans"] == 4


def test_health_degraded_without_plans(client):
    db.session.query(SubscriptionPlan).update({"is_active": False})
    db.session.commit()
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.json["status"] == "degraded"
