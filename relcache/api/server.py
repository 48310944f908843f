"""relcache read API server."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Tuple, Union

from flask import Flask, Response, jsonify, request
from flask_cors import CORS
from pydantic import ValidationError as PydanticValidationError

from relcache import __version__
from relcache.api.errors import NotFoundError, ValidationError, handle_api_errors, safe_endpoint
from relcache.api.models import ImageSearchQuery
from relcache.cache.store import CacheStore
from relcache.metrics import init_metrics
from relcache.scheduler import AgentScheduler
from relcache.views import ClusterProvider, ImageSearchProvider, LoadBalancerProvider

# Type alias for Flask responses
FlaskResponse = Union[Response, Tuple[Response, int], Tuple[Dict[str, Any], int]]

logger = logging.getLogger(__name__)


def create_app(
    store: CacheStore,
    scheduler: Optional[AgentScheduler] = None,
    cors_origins: Optional[List[str]] = None,
) -> Flask:
    """Create and configure the read API Flask application.

    Args:
        store: Cache store the views read from
        scheduler: Optional scheduler whose agent statuses are reported
        cors_origins: Allowed CORS origins; all origins when None

    Returns:
        Configured Flask application
    """
    app = Flask(__name__)
    CORS(app, origins=cors_origins or "*")
    handle_api_errors(app)
    init_metrics(app, __version__, store)

    clusters = ClusterProvider(store)
    load_balancers = LoadBalancerProvider(store)
    images = ImageSearchProvider(store)

    @app.route("/health")
    def health() -> FlaskResponse:
        """Health check endpoint.

        Returns status of the cache store and the last agent runs.
        """
        health_status = {"status": "ok", "checks": {}, "version": __version__}

        if store.health_check():
            health_status["checks"]["store"] = "ok"
        else:
            health_status["checks"]["store"] = "error"
            health_status["status"] = "degraded"

        if scheduler is not None:
            runs = scheduler.statuses()
            failed = [r.agent_type for r in runs if not r.ok]
            health_status["checks"]["agents"] = f"{len(runs) - len(failed)}/{len(runs)} ok"

        if health_status["status"] == "ok":
            return jsonify(health_status)
        return jsonify(health_status), 503

    @app.route("/images/find")
    @safe_endpoint("find images")
    def find_images() -> FlaskResponse:
        try:
            query = ImageSearchQuery.model_validate(request.args.to_dict())
        except PydanticValidationError as e:
            raise ValidationError(e.errors()[0]["msg"], field=str(e.errors()[0]["loc"][0]))
        results = images.find(query.q, account=query.account, region=query.region)
        return jsonify([r.to_dict() for r in results])

    @app.route("/applications/<application>/clusters")
    @safe_endpoint("get cluster details")
    def cluster_details(application: str) -> FlaskResponse:
        details = clusters.get_cluster_details(application)
        if details is None:
            raise NotFoundError("Application", application)
        return jsonify({app_name: [c.to_dict() for c in found] for app_name, found in details.items()})

    @app.route("/applications/<application>/clusters/<account>")
    @safe_endpoint("get clusters")
    def account_clusters(application: str, account: str) -> FlaskResponse:
        return jsonify([c.to_dict() for c in clusters.get_clusters(application, account)])

    @app.route("/applications/<application>/clusters/<account>/<name>")
    @safe_endpoint("get cluster")
    def cluster(application: str, account: str, name: str) -> FlaskResponse:
        found = clusters.get_cluster(application, account, name)
        if found is None:
            raise NotFoundError("Cluster", name)
        return jsonify(found.to_dict())

    @app.route("/serverGroups/<account>/<region>/<name>")
    @safe_endpoint("get server group")
    def server_group(account: str, region: str, name: str) -> FlaskResponse:
        found = clusters.get_server_group(account, region, name)
        if found is None:
            raise NotFoundError("Server group", name)
        return jsonify(found.to_dict())

    @app.route("/applications/<application>/loadBalancers")
    @safe_endpoint("get application load balancers")
    def application_load_balancers(application: str) -> FlaskResponse:
        found = load_balancers.get_application_load_balancers(application)
        return jsonify([lb.to_dict() for lb in found])

    @app.route("/loadBalancers")
    @safe_endpoint("list load balancers")
    def list_load_balancers() -> FlaskResponse:
        return jsonify([lb.to_dict() for lb in load_balancers.list()])

    @app.route("/loadBalancers/<account>/<region>/<name>")
    @safe_endpoint("get load balancer")
    def load_balancer(account: str, region: str, name: str) -> FlaskResponse:
        found = load_balancers.by_account_region_name(account, region, name)
        if not found:
            raise NotFoundError("Load balancer", name)
        return jsonify([{"results": attributes} for attributes in found])

    @app.route("/agents")
    def agents() -> FlaskResponse:
        runs = scheduler.statuses() if scheduler is not None else []
        return jsonify({"agents": [r.to_dict() for r in runs], "count": len(runs)})

    return app
