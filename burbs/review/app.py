from flask import Flask, jsonify, request

from burbs.analysis.aggregate import ScoringWindow, build_dashboard
from burbs.analysis.teams import TeamMembership
from burbs.config import challenge_settings, load_config
from burbs.db import ActivityStore, StoreError
from burbs.ingest.strava_client import (
    CredentialError,
    StravaCredentials,
    StravaFetchError,
    fetch_from_config,
)
from burbs.ingest.strava_sync import sync_strava
from burbs.reconcile.dates import (
    InvalidDateError,
    delete_activity_date,
    get_activity_dates,
    save_activity_date,
    save_activity_dates,
)


def create_app(config=None, store=None, credentials=None, fetch=fetch_from_config):
    app = Flask(__name__)

    if config is None:
        config = load_config()
    app.config["BURBS"] = config

    store = store or ActivityStore.from_config(config)
    membership = TeamMembership.from_config(config)
    challenge = challenge_settings(config)
    window = ScoringWindow(challenge["month"])

    # One credential cache for the life of the app
    state = {"credentials": credentials}

    def get_credentials():
        if state["credentials"] is None:
            state["credentials"] = StravaCredentials.from_config(config)
        return state["credentials"]

    # ── Errors ───────────────────────────────────────────────────────

    @app.errorhandler(StravaFetchError)
    def _fetch_failed(e):
        return jsonify({"success": False, "error": str(e), "retryable": True}), 503

    @app.errorhandler(CredentialError)
    def _credentials_failed(e):
        return jsonify({"success": False, "error": str(e)}), 502

    @app.errorhandler(StoreError)
    def _store_failed(e):
        return jsonify({"success": False, "error": str(e)}), 500

    @app.errorhandler(InvalidDateError)
    def _bad_date(e):
        return jsonify({"error": str(e)}), 400

    # ── Dashboard ────────────────────────────────────────────────────

    @app.route("/api/dashboard")
    def api_dashboard():
        dashboard = build_dashboard(
            store.load_activities(),
            membership,
            window,
            overrides=store.load_date_overrides(),
            seed=challenge.get("daily_seed"),
            last_sync=store.last_sync(),
        )
        return jsonify(dashboard.to_dict())

    # ── Sync ─────────────────────────────────────────────────────────

    @app.route("/api/sync", methods=["GET", "POST"])
    def api_sync():
        result = sync_strava(config, store, get_credentials(), fetch=fetch)
        return jsonify({
            "success": True,
            "message": "Sync completed successfully",
            "stats": result.to_dict(),
        })

    # ── Date corrections ─────────────────────────────────────────────

    @app.route("/api/dates", methods=["GET"])
    def api_get_dates():
        return jsonify({"dates": get_activity_dates(store)})

    @app.route("/api/dates", methods=["POST"])
    def api_save_dates():
        data = request.get_json(silent=True)
        if not data or not isinstance(data, dict):
            return jsonify({"error": "JSON object body required"}), 400

        if isinstance(data.get("dates"), dict):
            count = save_activity_dates(store, data["dates"])
            return jsonify({"success": True, "count": count})

        activity_id = data.get("activityId") or data.get("activity_id")
        date = data.get("date")
        if not activity_id or not date:
            return jsonify({"error": "Missing activityId or date"}), 400

        save_activity_date(store, str(activity_id), date)
        return jsonify({"success": True, "activityId": str(activity_id), "date": date})

    @app.route("/api/dates/<activity_id>", methods=["DELETE"])
    def api_delete_date(activity_id):
        if not delete_activity_date(store, activity_id):
            return jsonify({"error": "not found"}), 404
        return jsonify({"success": True, "activityId": activity_id})

    # ── Debug ────────────────────────────────────────────────────────

    @app.route("/api/debug")
    def api_debug():
        """First page of the raw feed with team matching, for name mismatches."""
        raw = fetch(config, get_credentials(), per_page=50, max_pages=1)
        return jsonify({
            "total_activities_returned": len(raw),
            "configured_athletes": membership.configured_athletes(),
            "activities": [
                {
                    "name": a.name,
                    "athlete_firstname": a.athlete_firstname,
                    "athlete_lastname": a.athlete_lastname,
                    "display_name": a.athlete_name,
                    "team_matched": membership.team_for(a.athlete_name),
                    "type": a.type,
                    "sport_type": a.sport_type,
                    "distance": a.distance,
                    "local_date": a.local_date,
                }
                for a in raw
            ],
        })

    return app
