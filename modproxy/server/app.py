import logging
from typing import Optional

from flask import Flask, Response, send_file
from werkzeug.exceptions import HTTPException

from modproxy.config import ProxyConfig
from modproxy.exceptions import NamespaceRejected, ProxyError
from modproxy.model import Artifact, CacheKey
from modproxy.server.routing import (
    Endpoint,
    parse_request_path,
    path_in_namespace,
    under_namespace,
)
from modproxy.service import ModuleProxy

logger = logging.getLogger(__name__)


def _plain(message: str, status: int) -> Response:
    return Response(message + "\n", status=status, mimetype="text/plain")


def create_app(config: ProxyConfig, proxy: Optional[ModuleProxy] = None) -> Flask:
    """
    Build the Flask application serving the module protocol.

    Args:
        config: Resolved configuration
        proxy: Prebuilt component graph (defaults to one built from config)
    """
    app = Flask(__name__)
    if proxy is None:
        proxy = ModuleProxy(config)
    app.extensions["modproxy"] = proxy

    namespace = config.source_namespace

    @app.after_request
    def no_store(response: Response) -> Response:
        # a version such as a branch name can resolve differently later
        response.headers["Cache-Control"] = "no-store"
        return response

    @app.errorhandler(ProxyError)
    def handle_proxy_error(error: ProxyError):
        if error.status_code >= 500:
            logger.error(f"{error.status_code}: {error}")
        else:
            logger.info(f"{error.status_code}: {error}")
        return _plain(str(error), error.status_code)

    @app.errorhandler(HTTPException)
    def handle_http_error(error: HTTPException):
        # unsupported methods are answered like unknown modules
        status = 404 if error.code == 405 else (error.code or 500)
        return _plain(error.name if status == error.code else "Not Found", status)

    def send_artifact(key: CacheKey, artifact: Artifact) -> Response:
        handle = proxy.open_artifact(key, artifact)
        response = send_file(handle, mimetype=artifact.content_type, etag=False)
        # werkzeug appends its own charset to text/* mimetypes
        response.headers["Content-Type"] = artifact.content_type
        return response

    @app.route("/", defaults={"path": ""}, methods=["GET"])
    @app.route("/<path:path>", methods=["GET"])
    def serve(path: str):
        raw = "/" + path
        if not path_in_namespace(raw, namespace):
            raise NamespaceRejected(raw)

        req = parse_request_path(raw)
        if not under_namespace(req.module, namespace):
            raise NamespaceRejected(raw)

        if req.endpoint is Endpoint.LIST:
            logger.info(f"list {req.module}")
            versions = proxy.tags.list_versions(req.module)
            return Response(
                "".join(f"{v}\n" for v in versions), mimetype="text/plain"
            )

        if req.endpoint is Endpoint.LATEST:
            logger.info(f"latest {req.module}")
            version = proxy.tags.latest_version(req.module)
            logger.info(f"latest {req.module} => {version}")
            return send_artifact(CacheKey(req.module, version), Artifact.INFO)

        logger.info(f"{req.endpoint.value} {req.key}")
        return send_artifact(req.key, req.endpoint.artifact)

    return app
