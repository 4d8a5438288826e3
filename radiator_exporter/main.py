"""Radiator Exporter - Entrypoint

/metrics: 마지막으로 성공한 폴링 주기의 OpenMetrics 텍스트
/healthz: 프로세스 생존 확인
/status: 폴링 카운터 (JSON)
"""

import argparse
import asyncio
import logging
import sys

from aiohttp import web

from radiator_exporter.config import CONFIG_PATH, LOG_LEVEL, ExporterConfig, load_config
from radiator_exporter.errors import ConfigError
from radiator_exporter.poller import ExpositionStore, Poller
from radiator_exporter.providers.radiator import RadiatorProvider

logger = logging.getLogger(__name__)

STORE_KEY = web.AppKey("store", ExpositionStore)
POLLER_KEY = web.AppKey("poller", Poller)


async def handle_healthz(request: web.Request) -> web.Response:
    return web.Response(text="ok")


async def handle_metrics(request: web.Request) -> web.Response:
    # 업스트림 폴링이 실패해도 마지막 성공 결과를 200 으로 돌려준다
    exposition = request.app[STORE_KEY].current()
    return web.Response(
        body=exposition.text.encode("utf-8"),
        headers={"Content-Type": exposition.content_type},
    )


async def handle_status(request: web.Request) -> web.Response:
    poller = request.app[POLLER_KEY]
    status = poller.status.to_dict()
    status["state"] = poller.state.value
    return web.json_response(status)


def create_app(poller: Poller) -> web.Application:
    app = web.Application()
    app[STORE_KEY] = poller.store
    app[POLLER_KEY] = poller
    app.router.add_get("/healthz", handle_healthz)
    app.router.add_get("/metrics", handle_metrics)
    app.router.add_get("/status", handle_status)
    return app


def build_poller(config: ExporterConfig) -> Poller:
    return Poller(
        catalog=config.catalog,
        provider=RadiatorProvider(config.radiator),
        store=ExpositionStore(),
        poll_interval=config.radiator.poll_interval,
        backoff_max=config.radiator.backoff_max,
    )


async def main(config: ExporterConfig) -> None:
    poller = build_poller(config)
    app = create_app(poller)

    runner = web.AppRunner(app)
    await runner.setup()
    site = web.TCPSite(runner, config.www.bind_address, config.www.port)
    await site.start()
    logger.info(
        "Radiator exporter started on [%s]:%d, polling %s:%d",
        config.www.bind_address,
        config.www.port,
        config.radiator.target,
        config.radiator.mgmt_port,
    )

    try:
        await poller.run()
    finally:
        await runner.cleanup()


def run(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        prog="radiator-exporter",
        description="Expose Radiator Monitor statistics as OpenMetrics",
    )
    parser.add_argument("config", nargs="?", default=CONFIG_PATH, help="path to config TOML")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, LOG_LEVEL),
        format="%(asctime)s [%(levelname)s] %(message)s",
    )

    try:
        config = load_config(args.config)
    except ConfigError as e:
        logger.error("Error in configuration: %s", e)
        return 1

    try:
        asyncio.run(main(config))
    except KeyboardInterrupt:
        logger.info("Shutting down")
    return 0


if __name__ == "__main__":
    sys.exit(run())
