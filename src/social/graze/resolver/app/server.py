import asyncio
import contextlib
import logging
from time import time
from typing import Optional

import aiohttp
from aiohttp import web
import sentry_sdk
from sentry_sdk.integrations.aiohttp import AioHttpIntegration

from social.graze.resolver.app.config import (
    HealthGaugeAppKey,
    MetricsClientAppKey,
    ResolverAppKey,
    SessionAppKey,
    Settings,
    SettingsAppKey,
    TickHealthTaskAppKey,
)
from social.graze.resolver.app.handlers.internal import (
    handle_internal_alive,
    handle_internal_ready,
)
from social.graze.resolver.app.handlers.resolver import (
    handle_methods,
    handle_properties,
    handle_resolve,
    handle_test_identifiers,
    handle_traits,
)
from social.graze.resolver.app.health import HealthGauge, tick_health_task
from social.graze.resolver.app.metrics import create_metrics_client
from social.graze.resolver.resolver import LocalResolver

logger = logging.getLogger(__name__)


async def background_tasks(app):
    logger.info("Starting up")
    settings: Settings = app[SettingsAppKey]

    metrics_client = create_metrics_client(
        settings.metrics_backend,
        host=settings.statsd_host,
        port=settings.statsd_port,
        otel_endpoint=settings.otel_endpoint,
        debug=settings.debug,
    )
    await metrics_client.connect()
    app[MetricsClientAppKey] = metrics_client

    trace_config = aiohttp.TraceConfig()

    if settings.debug:

        async def on_request_start(
            session, trace_config_ctx, params: aiohttp.TraceRequestStartParams
        ):
            logging.info("Starting request: %s", params)

        async def on_request_end(session, trace_config_ctx, params):
            logging.info("Ending request: %s", params)

        trace_config.on_request_start.append(on_request_start)
        trace_config.on_request_end.append(on_request_end)

    app[SessionAppKey] = aiohttp.ClientSession(
        timeout=aiohttp.ClientTimeout(total=settings.http_timeout),
        trace_configs=[trace_config],
    )

    if ResolverAppKey in app:
        app[ResolverAppKey].metrics_client = metrics_client
    else:
        app[ResolverAppKey] = LocalResolver.from_settings(
            settings, app[SessionAppKey], metrics_client=metrics_client
        )

    logger.info("Startup complete")

    app[TickHealthTaskAppKey] = asyncio.create_task(
        tick_health_task(app[HealthGaugeAppKey])
    )

    yield

    logger.info("Shutting down background tasks")

    app[TickHealthTaskAppKey].cancel()

    with contextlib.suppress(asyncio.exceptions.CancelledError):
        await app[TickHealthTaskAppKey]

    await app[SessionAppKey].close()
    await app[MetricsClientAppKey].close()


@web.middleware
async def sentry_middleware(request: web.Request, handler):
    try:
        response = await handler(request)
        return response
    except web.HTTPException:
        raise
    except Exception as e:
        sentry_sdk.capture_exception(e)
        await request.app[HealthGaugeAppKey].womp()
        raise e


@web.middleware
async def metrics_middleware(request: web.Request, handler):
    metrics_client = request.app[MetricsClientAppKey]
    request_method: str = request.method
    request_path = request.path

    start_time: float = time()
    response_status_code = 0

    try:
        response = await handler(request)
        response_status_code = response.status
        return response
    except Exception as e:
        metrics_client.increment(
            "resolver.server.request.exception",
            1,
            tag_dict={
                "exception": type(e).__name__,
                "path": request_path,
                "method": request_method,
            },
        )
        raise e
    finally:
        metrics_client.timer(
            "resolver.server.request.time",
            time() - start_time,
            tag_dict={"path": request_path, "method": request_method},
        )
        metrics_client.increment(
            "resolver.server.request.count",
            1,
            tag_dict={
                "path": request_path,
                "method": request_method,
                "status": response_status_code,
            },
        )


async def start_web_server(
    settings: Optional[Settings] = None, resolver: Optional[LocalResolver] = None
):
    """
    Build the resolver web application.

    Args:
        settings: Service settings, loaded from the environment when omitted
        resolver: Pre-built resolver; when omitted one is configured from the
            settings at startup
    """
    if settings is None:
        settings = Settings()  # type: ignore
    if settings.sentry_dsn:
        sentry_sdk.init(
            dsn=settings.sentry_dsn,
            send_default_pii=True,
            integrations=[AioHttpIntegration()],
        )
    app = web.Application(middlewares=[metrics_middleware, sentry_middleware])

    app[SettingsAppKey] = settings
    app[HealthGaugeAppKey] = HealthGauge()
    if resolver is not None:
        app[ResolverAppKey] = resolver

    app.add_routes(
        [
            web.get("/1.0/identifiers/{identifier}", handle_resolve),
            web.get("/1.0/properties", handle_properties),
            web.get("/1.0/methods", handle_methods),
            web.get("/1.0/testIdentifiers", handle_test_identifiers),
            web.get("/1.0/traits", handle_traits),
        ]
    )

    app.add_routes(
        [
            web.get("/internal/alive", handle_internal_alive),
            web.get("/internal/ready", handle_internal_ready),
        ]
    )

    app.cleanup_ctx.append(background_tasks)

    return app
