"""Main CLI interface for the chart momentum forecaster."""

import argparse
import logging
import sys
from datetime import date

from .config import load_config
from .data.loader import DataLoader, DataLoadError
from .data.providers import CachedMarketLookup, configured_credits_provider, configured_market_provider
from .features.feature_builder import FeatureBuilder
from .markets.distributor import MarketProbabilityDistributor
from .markets.edge import find_edges, significant_edges
from .pipeline.weekly import run_weekly_forecasts_to_file
from .predictors.market_blend import blend_for_region


def _parse_date(value: str) -> date:
    try:
        return date.fromisoformat(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"Invalid date (expected YYYY-MM-DD): {value}")


def create_sample(args):
    """Write a sample signal snapshot."""
    print(f"Creating sample snapshot at {args.output}...")
    DataLoader.create_sample_data(args.output)
    print("✓ Sample snapshot created")
    return 0


def run_forecast(args):
    """Run the weekly batch over a snapshot."""
    config = load_config(args.config)
    regions = [r.strip() for r in (args.regions or "").split(",") if r.strip()]
    market_provider = configured_market_provider(args.market_url)
    credits_provider = configured_credits_provider()
    if market_provider is not None:
        print(f"Market quotes from {market_provider.url_template}")
    if credits_provider is not None:
        print("Cast credits from TMDB")
    try:
        report = run_weekly_forecasts_to_file(
            config,
            args.input,
            args.output,
            args.week,
            regions,
            market_source=market_provider,
            credits_provider=credits_provider,
        )
    except (OSError, DataLoadError) as exc:
        print(f"Error: {exc}")
        return 1

    summary = report["summary"]
    print(f"✓ Forecasts for week {report['week_start']} written to {args.output}")
    print(f"Rank forecasts: {summary['rank_forecasts']}  Viewership forecasts: {summary['viewership_forecasts']}")
    for regime, count in summary["by_regime"].items():
        print(f"  {regime:<16} {count}")
    if report["errors"]:
        print(f"{len(report['errors'])} titles failed:")
        for error in report["errors"]:
            print(f"  {error}")
    return 0


def market_probabilities(args):
    """Distribute probabilities over a market question's outcomes."""
    config = load_config(args.config)
    try:
        store = DataLoader.load_store_from_json(args.input)
    except (OSError, DataLoadError) as exc:
        print(f"Error: {exc}")
        return 1

    names = [n.strip() for n in args.outcomes.split(",") if n.strip()]
    as_of = args.as_of or date.today()
    result = MarketProbabilityDistributor(store, config).distribute(args.question, names, as_of)

    print(f"\n{result.market_question}")
    print("-" * 60)
    for outcome in sorted(result.outcomes, key=lambda o: -o.probability):
        matched = outcome.matched_title_id or "unmatched"
        print(f"{outcome.name:<32} {outcome.probability:5.1f}%  ({outcome.confidence}, {matched})")
    print(f"{'Field':<32} {result.field_probability:5.1f}%")

    if args.output:
        DataLoader.save_json(result.to_dict(), args.output)
        print(f"\n✓ Written to {args.output}")
    return 0


def show_movers(args):
    """Print top movers and breakouts for a chart week."""
    config = load_config(args.config)
    try:
        store = DataLoader.load_store_from_json(args.input)
    except (OSError, DataLoadError) as exc:
        print(f"Error: {exc}")
        return 1

    weeks = store.get_weeks_with_data()
    week = args.week or (weeks[-1] if weeks else None)
    if week is None:
        print("No chart weeks in snapshot")
        return 1

    builder = FeatureBuilder(store, config)
    print(f"\nTOP MOVERS - week of {week.isoformat()}")
    print("-" * 60)
    for features in builder.top_movers(week, args.limit):
        delta = features.global_rank_delta
        delta_text = f"{delta:+d}" if delta is not None else "n/a"
        print(
            f"{features.canonical_name:<32} momentum {features.momentum_score:5.1f}  "
            f"accel {features.acceleration_score:+6.1f}  rank delta {delta_text}"
        )

    breakouts = builder.breakouts(week)
    print(f"\nBREAKOUTS (momentum >= {config.breakout_threshold:g}, accelerating)")
    print("-" * 60)
    if not breakouts:
        print("None")
    for features in breakouts:
        print(f"{features.canonical_name:<32} accel {features.acceleration_score:+6.1f}")
    return 0


def blend_report(args):
    """Apply market quotes for a region to a forecast report."""
    config = load_config(args.config)
    try:
        forecasts = DataLoader.load_forecasts_from_json(args.forecasts)
        store = DataLoader.load_store_from_json(args.input)
    except (OSError, DataLoadError) as exc:
        print(f"Error: {exc}")
        return 1

    region = args.region or None
    market_provider = configured_market_provider(args.market_url)
    lookup = CachedMarketLookup(market_provider or store.get_market_probability, config.cache_ttl_seconds)
    blended = []
    for forecast in forecasts:
        title = store.get_title(forecast.title_id)
        if title is None:
            blended.append(forecast)
            continue
        result = blend_for_region(
            forecast,
            title.canonical_name,
            title.kind,
            lookup,
            region=region,
            thresholds=config.blend,
            z=config.z_score,
        )
        if result is not forecast:
            override = result.explain.applied_overrides[-1]
            print(
                f"{forecast.title_id:<24} {override['tier']:<9} p={override['probability']:.2f}  "
                f"rank {forecast.p50} -> {result.p50}"
            )
        blended.append(result)

    DataLoader.save_json(
        {"region": region, "forecasts": [f.to_dict() for f in blended]},
        args.output,
    )
    print(f"✓ Blended forecasts written to {args.output}")
    return 0


def edge_report(args):
    """Price rank forecasts against #1-slot market quotes."""
    config = load_config(args.config)
    try:
        forecasts = DataLoader.load_forecasts_from_json(args.forecasts)
        store = DataLoader.load_store_from_json(args.input)
    except (OSError, DataLoadError) as exc:
        print(f"Error: {exc}")
        return 1

    region = args.region or None
    market_provider = configured_market_provider(args.market_url)
    lookup = CachedMarketLookup(market_provider or store.get_market_probability, config.cache_ttl_seconds)
    edges = significant_edges(find_edges(forecasts, store, lookup, region=region), args.min_edge)

    print(f"\nEDGES (|edge| >= {args.min_edge:g}%)")
    print("-" * 60)
    if not edges:
        print("None")
    for edge in edges:
        print(
            f"{edge.title_name:<32} {edge.signal.direction:<5} {edge.signal.edge_percent:+6.1f}%  "
            f"market {edge.market_probability:.2f} model {edge.model.probability:.2f}"
        )
        print(f"    {edge.reasoning}")

    if args.output:
        DataLoader.save_json({"region": region, "edges": [e.to_dict() for e in edges]}, args.output)
        print(f"\n✓ Written to {args.output}")
    return 0


def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="Chart Momentum Forecaster - next-week chart rank and viewership forecasts"
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    parser.add_argument("--config", "-c", default=None, help="JSON config file (default: $CHARTCAST_CONFIG)")

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    sample_parser = subparsers.add_parser("sample", help="Create a sample signal snapshot")
    sample_parser.add_argument(
        "--output", "-o",
        default="sample_snapshot.json",
        help="Output file for sample data (default: sample_snapshot.json)"
    )

    forecast_parser = subparsers.add_parser("forecast", help="Forecast every title for a chart week")
    forecast_parser.add_argument("--input", "-i", required=True, help="Signal snapshot JSON")
    forecast_parser.add_argument("--output", "-o", default="forecasts.json", help="Output report JSON")
    forecast_parser.add_argument(
        "--week",
        type=_parse_date,
        default=None,
        help="Target week start, YYYY-MM-DD (default: next Sunday)"
    )
    forecast_parser.add_argument(
        "--regions",
        default=None,
        help="Comma-separated regions to add market-blended views for (e.g. US,GB)"
    )
    forecast_parser.add_argument(
        "--market-url",
        default=None,
        help="Market quote URL template with {title}, {kind}, {region} (default: $CHARTCAST_MARKET_URL, else snapshot quotes)"
    )

    market_parser = subparsers.add_parser(
        "market-probabilities", help="Probability distribution for a market question"
    )
    market_parser.add_argument("--input", "-i", required=True, help="Signal snapshot JSON")
    market_parser.add_argument("--question", "-q", required=True, help="Market question text")
    market_parser.add_argument("--outcomes", required=True, help="Comma-separated outcome names")
    market_parser.add_argument("--as-of", type=_parse_date, default=None, help="Tracker as-of date (default: today)")
    market_parser.add_argument("--output", "-o", default=None, help="Optional output JSON")

    movers_parser = subparsers.add_parser("movers", help="Top movers and breakouts for a chart week")
    movers_parser.add_argument("--input", "-i", required=True, help="Signal snapshot JSON")
    movers_parser.add_argument("--week", type=_parse_date, default=None, help="Chart week (default: latest)")
    movers_parser.add_argument("--limit", type=int, default=10, help="Number of movers to show (default: 10)")

    blend_parser = subparsers.add_parser("blend", help="Apply market quotes to a forecast report")
    blend_parser.add_argument("--forecasts", "-f", required=True, help="Forecast report JSON")
    blend_parser.add_argument("--input", "-i", required=True, help="Signal snapshot JSON with market quotes")
    blend_parser.add_argument("--region", "-r", default=None, help="Market region (default: region-less quotes)")
    blend_parser.add_argument(
        "--market-url",
        default=None,
        help="Market quote URL template (default: $CHARTCAST_MARKET_URL, else snapshot quotes)"
    )
    blend_parser.add_argument("--output", "-o", default="blended_forecasts.json", help="Output JSON")

    edges_parser = subparsers.add_parser("edges", help="Model vs market edges for #1 quotes")
    edges_parser.add_argument("--forecasts", "-f", required=True, help="Forecast report JSON")
    edges_parser.add_argument("--input", "-i", required=True, help="Signal snapshot JSON with market quotes")
    edges_parser.add_argument("--region", "-r", default=None, help="Market region (default: region-less quotes)")
    edges_parser.add_argument(
        "--market-url",
        default=None,
        help="Market quote URL template (default: $CHARTCAST_MARKET_URL, else snapshot quotes)"
    )
    edges_parser.add_argument(
        "--min-edge", type=float, default=10.0, help="Minimum absolute edge in percent (default: 10)"
    )
    edges_parser.add_argument("--output", "-o", default=None, help="Optional output JSON")

    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.command == "sample":
        return create_sample(args)
    elif args.command == "forecast":
        return run_forecast(args)
    elif args.command == "market-probabilities":
        return market_probabilities(args)
    elif args.command == "movers":
        return show_movers(args)
    elif args.command == "blend":
        return blend_report(args)
    elif args.command == "edges":
        return edge_report(args)
    else:
        parser.print_help()
        return 1


if __name__ == "__main__":
    sys.exit(main())
