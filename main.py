from __future__ import annotations
import argparse, asyncio, logging, signal, sys
from pathlib import Path


def parse_args():
    ap = argparse.ArgumentParser(description="AutoChef order engine")
    ap.add_argument("--config", required=True, help="Path to YAML config")
    ap.add_argument("--random-recipe", action="store_true", help="Ignore order recipe ids and pick recipes at random")
    ap.add_argument("--set", dest="overrides", action="append", default=[], metavar="KEY=VALUE",
                    help="Dotted config override, e.g. api.settings.max_retries=5")
    ap.add_argument("--log-level", default="INFO", choices=["DEBUG","INFO","WARNING","ERROR"])
    return ap.parse_args()


def _parse_overrides(pairs):
    overrides = {}
    for pair in pairs:
        key, sep, value = pair.partition("=")
        if not sep or not key:
            raise SystemExit(f"Invalid override (expected KEY=VALUE): {pair}")
        overrides[key.strip()] = value.strip()
    return overrides


async def _serve(service) -> bool:
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, service.stop)
        except NotImplementedError:
            pass
    return await service.run()


def main():
    args = parse_args()
    logging.basicConfig(level=getattr(logging, args.log_level), format="%(asctime)s [%(levelname)s] %(name)s: %(message)s")

    from auto_chef import config
    from auto_chef.service import AutoChefService

    overrides = _parse_overrides(args.overrides)
    if args.random_recipe:
        overrides["use_random_recipe"] = "true"
    cfg = config.load_main_config(Path(args.config), overrides=overrides)
    service = AutoChefService.from_config(cfg)

    try:
        operational = asyncio.run(_serve(service))
    except KeyboardInterrupt:
        operational = service.catalog.is_operational
    sys.exit(0 if operational else 1)

if __name__ == "__main__":
    main()
