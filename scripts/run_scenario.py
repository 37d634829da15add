#!/usr/bin/env python3
"""Run the settlement scenario and print a summary.

Events go to the sinks named by ``--sinks`` (or ``EVENT_SINKS``); use
``json`` to keep an event log under ``--output-dir``.
"""

import argparse
import logging
from dataclasses import replace
from pathlib import Path

from estate_deals.config import EstateDealsConfig
from estate_deals.logging import setup_logging
from estate_deals.scenarios import SettlementScenario

logger = logging.getLogger("estate_deals.scripts.run_scenario")


def main() -> None:
    """Parse arguments and run the scenario."""
    parser = argparse.ArgumentParser(description="Run the property settlement scenario")
    parser.add_argument(
        "--properties",
        type=int,
        default=10,
        help="Number of listings to generate (default: 10)",
    )
    parser.add_argument(
        "--internal-rate",
        type=float,
        default=0.5,
        help="Share of offers from the agency's own buyers (default: 0.5)",
    )
    parser.add_argument(
        "--instalments",
        type=int,
        default=3,
        help="Instalments per payment schedule (default: 3)",
    )
    parser.add_argument(
        "--seed",
        type=int,
        default=42,
        help="Random seed for reproducibility (default: 42)",
    )
    parser.add_argument(
        "--sinks",
        type=str,
        default=None,
        help="Comma-separated event sinks: console,json,kafka,postgres,memory",
    )
    parser.add_argument(
        "--output-dir",
        type=Path,
        default=None,
        help="Directory for the JSON event log",
    )
    args = parser.parse_args()

    config = EstateDealsConfig.from_env()
    if args.sinks is not None:
        sinks = [name.strip() for name in args.sinks.split(",") if name.strip()]
        config = replace(config, event_sinks=sinks)
    if args.output_dir is not None:
        config.output.events_dir = args.output_dir

    setup_logging(config.log_level, config.log_format)

    scenario = SettlementScenario(
        num_properties=args.properties,
        internal_match_rate=args.internal_rate,
        instalments=args.instalments,
        seed=args.seed,
        config=config,
    )
    result = scenario.generate()

    for deal in result.deals:
        logger.info(
            "%s  %-9s  %-14s  price=%s  commission=%s",
            deal.deal_number,
            deal.status.value,
            deal.policy.value,
            deal.agreed_price,
            deal.commission.total,
        )
    logger.info("Store: %s", result.engine.repository.summary())
    result.engine.close()


if __name__ == "__main__":
    main()
