"""Command-line interface for meter consumption analysis."""

import json
from datetime import date
from pathlib import Path

import click
from rich.console import Console
from rich.table import Table

from . import db
from .analysis import summary
from .analysis.rollup import Window, parse_window
from .collectors import meter_api, meter_csv
from .config import load_config
from .log import setup_logging
from .tariffs import TOTAL_KEY, TariffClassifier

console = Console()


def _parse_date(value: str) -> date:
    try:
        return date.fromisoformat(value)
    except ValueError:
        raise click.BadParameter(f"Expected YYYY-MM-DD, got {value!r}")


def _parse_month(value: str) -> tuple[int, int]:
    try:
        year, month = value.split("-")
        return int(year), int(month)
    except ValueError:
        raise click.BadParameter(f"Expected YYYY-MM, got {value!r}")


def _print_json(data) -> None:
    click.echo(json.dumps(data, indent=2))


def _fmt(value, suffix: str = "") -> str:
    return "N/A" if value is None else f"{value}{suffix}"


@click.group()
@click.option("--db-path", type=click.Path(), help="Path to SQLite database")
@click.option("--config", "config_path", type=click.Path(), help="Path to meterwatch.yaml")
@click.option("--verbose", "-v", is_flag=True, help="Show debug logging")
@click.pass_context
def cli(ctx, db_path, config_path, verbose):
    """Meter consumption analysis - aggregate and classify half-hourly readings."""
    setup_logging(verbose)
    ctx.ensure_object(dict)
    ctx.obj["db_path"] = Path(db_path) if db_path else None
    try:
        ctx.obj["config"] = load_config(Path(config_path) if config_path else None)
    except (ValueError, FileNotFoundError) as e:
        raise click.ClickException(f"Invalid configuration: {e}")


# Database commands
@cli.group()
def database():
    """Database management commands."""
    pass


@database.command("init")
@click.pass_context
def db_init(ctx):
    """Initialize the database schema."""
    db.init_db(ctx.obj["db_path"])
    console.print("[green]Database initialized successfully[/green]")


@database.command("stats")
@click.pass_context
def db_stats(ctx):
    """Show database statistics."""
    stats = db.get_stats(ctx.obj["db_path"])

    table = Table(title="Database Statistics")
    table.add_column("Category", style="cyan")
    table.add_column("Count", justify="right")
    table.add_column("Range")

    readings = stats["meter_readings"]
    table.add_row(
        "Meter readings",
        str(readings["count"]),
        f"{readings['earliest'] or 'N/A'} → {readings['latest'] or 'N/A'}",
    )
    for consumer_id, count in stats.get("readings_by_consumer", {}).items():
        table.add_row(f"  └ {consumer_id}", str(count), "")

    table.add_row("Consumers", str(stats["consumers"]["count"]), "")

    console.print(table)


# Import commands
@cli.group("import")
def import_cmd():
    """Import meter readings."""
    pass


def _print_import_result(result: dict) -> None:
    console.print(f"[green]Imported {result['imported']} readings[/green]")
    if result["skipped"]:
        console.print(f"[yellow]Skipped {result['skipped']} duplicates[/yellow]")
    if result.get("rejected"):
        console.print(f"[yellow]Rejected {result['rejected']} unusable rows[/yellow]")


@import_cmd.command("csv")
@click.argument("csv_path", type=click.Path(exists=True))
@click.pass_context
def import_csv(ctx, csv_path):
    """Import half-hourly readings from a CSV file."""
    db.init_db(ctx.obj["db_path"])
    try:
        result = meter_csv.import_from_csv(Path(csv_path), ctx.obj["db_path"])
    except ValueError as e:
        console.print(f"[red]Error: {e}[/red]")
        return
    _print_import_result(result)


@import_cmd.command("api")
@click.option("--url", help="Meter service base URL (or set METERWATCH_API_URL)")
@click.option("--consumer", help="Only this consumer")
@click.option("--from-date", help="Start date (YYYY-MM-DD)")
@click.option("--to-date", help="End date, exclusive (YYYY-MM-DD)")
@click.pass_context
def import_api(ctx, url, consumer, from_date, to_date):
    """Download readings from the meter data service."""
    db.init_db(ctx.obj["db_path"])
    start = _parse_date(from_date) if from_date else None
    end = _parse_date(to_date) if to_date else None
    try:
        result = meter_api.fetch_and_import(url, consumer, start, end, ctx.obj["db_path"])
    except meter_api.MeterApiError as e:
        console.print(f"[red]Error: {e}[/red]")
        return
    _print_import_result(result)


# Tariff commands
@cli.group()
def tariff():
    """Tariff bucket commands."""
    pass


@tariff.command("show")
@click.pass_context
def tariff_show(ctx):
    """Show which tariff bucket each hour falls in."""
    classifier = TariffClassifier(ctx.obj["config"].tariff_windows)

    table = Table(title="Tariff Buckets")
    table.add_column("Hour", style="cyan")
    table.add_column("Bucket")
    table.add_column("Rate / kWh", justify="right")
    for hour, bucket in classifier.hour_table():
        style = "red" if classifier.is_peak(bucket) else ""
        table.add_row(
            f"{hour:02d}:00",
            f"[{style}]{bucket}[/{style}]" if style else bucket,
            _fmt(classifier.rate_for(hour)),
        )

    console.print(table)


@tariff.command("breakdown")
@click.argument("consumer")
@click.option("--month", help="Weekly breakdown of a month (YYYY-MM)")
@click.option("--year", type=int, help="Monthly breakdown of a year")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def tariff_breakdown(ctx, consumer, month, year, as_json):
    """Consumption per tariff bucket, by week of a month or month of a year."""
    config = ctx.obj["config"]
    if month:
        y, m = _parse_month(month)
        data = summary.tariff_breakdown_month(consumer, y, m, config, ctx.obj["db_path"])
        title = f"Tariff breakdown for {consumer}, {month}"
    elif year:
        data = summary.tariff_breakdown_year(consumer, year, config, ctx.obj["db_path"])
        title = f"Tariff breakdown for {consumer}, {year}"
    else:
        console.print("[red]Please specify --month or --year[/red]")
        return

    if not data:
        console.print("[yellow]No data found[/yellow]")
        return
    if as_json:
        _print_json(data)
        return

    columns = list(next(iter(data.values())).keys())
    table = Table(title=title)
    table.add_column("Period", style="cyan")
    for column in columns:
        table.add_column(column, justify="right")
    for label, row in data.items():
        table.add_row(label, *(f"{row[c]:.2f}" for c in columns))
    console.print(table)


# Report commands
@cli.command()
@click.argument("consumer")
@click.option("--date", "day", required=True, help="Date (YYYY-MM-DD)")
@click.option(
    "--window",
    type=click.Choice(["day", "week", "month"]),
    default="day",
    help="The day, or per-hour sums over the week starting at it or its month",
)
@click.option("--cost", "with_cost", is_flag=True, help="Include cost from the tariff rates")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def hourly(ctx, consumer, day, window, with_cost, as_json):
    """Hourly consumption (and cost) of a day, or summed over a week or month."""
    config = ctx.obj["config"]
    anchor = _parse_date(day)
    if window != "day":
        data = summary.hourly_cost_sums(
            consumer, anchor, parse_window(window), config, ctx.obj["db_path"]
        )
        value_key = TOTAL_KEY
    elif with_cost:
        data = summary.hourly_cost_for_date(consumer, anchor, config, ctx.obj["db_path"])
        value_key = "consumption"
    else:
        data = summary.hourly_for_date(consumer, anchor, config, ctx.obj["db_path"])
        value_key = "consumption"

    if window != "day" and not with_cost:
        data = [{k: v for k, v in row.items() if k != "cost"} for row in data]

    if as_json:
        _print_json(data)
        return
    if not data:
        console.print("[yellow]No data found[/yellow]")
        return

    title = f"Hourly consumption for {consumer} on {day}"
    if window != "day":
        title = f"Hourly consumption for {consumer}, {window} from {day}"
    table = Table(title=title)
    table.add_column("Hour", style="cyan")
    table.add_column("kWh", justify="right")
    if with_cost:
        table.add_column("Cost", justify="right")
    for row in data:
        cells = [row["hour"], f"{row[value_key]:.3f}"]
        if with_cost:
            cells.append(_fmt(row["cost"]))
        table.add_row(*cells)
    console.print(table)


def _variance_table(title: str, rows: dict[str, dict]) -> Table:
    table = Table(title=title)
    table.add_column("Consumer", style="cyan")
    table.add_column("High", justify="right")
    table.add_column("Above avg", justify="right")
    table.add_column("Low", justify="right")
    table.add_column("Below avg", justify="right")
    table.add_column("Average", justify="right")
    for name, data in rows.items():
        high, low = data["high"], data["low"]
        table.add_row(
            name,
            f"{high['consumption']} @ {high['hour']}",
            _fmt(high["percent_increase_from_avg"], "%"),
            f"{low['consumption']} @ {low['hour']}",
            _fmt(low["percent_decrease_from_avg"], "%"),
            str(data["average"]["consumption"]),
        )
    return table


@cli.command()
@click.argument("consumer")
@click.option("--date", "day", required=True, help="Anchor date (YYYY-MM-DD)")
@click.option(
    "--window",
    type=click.Choice(["day", "week", "month"]),
    default="day",
    help="Day, the week starting at the date, or its month",
)
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def variance(ctx, consumer, day, window, as_json):
    """High, low and average hour of a day, week or month."""
    data = summary.variance_report(
        consumer, _parse_date(day), parse_window(window), ctx.obj["config"], ctx.obj["db_path"]
    )

    if not data:
        console.print("[yellow]No data found[/yellow]")
        return
    if as_json:
        _print_json(data)
        return

    period = data["period"]
    console.print(_variance_table(f"Variance {period['start']} to {period['end']}", {consumer: data}))


@cli.command("variance-all")
@click.option("--year", type=int, help="Only this year")
@click.option("--month", help="Only this month (YYYY-MM)")
@click.option("--by-day-type", is_flag=True, help="Split into Mon-Fri, Sat and Sun")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def variance_all(ctx, year, month, by_day_type, as_json):
    """High, low and average hour of each consumer over its history, a year or a month."""
    anchor, window = None, Window.YEAR
    if month:
        y, m = _parse_month(month)
        anchor, window = date(y, m, 1), Window.MONTH
    elif year:
        anchor = date(year, 1, 1)

    config = ctx.obj["config"]
    if by_day_type:
        data = summary.variance_by_day_type(config, ctx.obj["db_path"], anchor, window)
    else:
        data = summary.variance_all(config, ctx.obj["db_path"], anchor, window)

    if not data:
        console.print("[yellow]No data found[/yellow]")
        return
    if as_json:
        _print_json(data)
        return

    def label(cid: str, name: str | None) -> str:
        return f"{cid} ({name})" if name else cid

    if not by_day_type:
        rows = {label(cid, d["name"]): d for cid, d in data.items()}
        console.print(_variance_table("Variance (all consumers)", rows))
        return

    for day_type in ("Mon-Fri", "Sat", "Sun"):
        rows = {label(cid, d["name"]): d[day_type] for cid, d in data.items() if d[day_type]}
        if rows:
            console.print(_variance_table(f"Variance (all consumers), {day_type}", rows))


@cli.command()
@click.argument("consumer")
@click.option("--month", required=True, help="Month (YYYY-MM)")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def demand(ctx, consumer, month, as_json):
    """Average hourly demand on weekdays, Saturdays and Sundays of a month."""
    year, m = _parse_month(month)
    data = summary.demand_profile(consumer, year, m, ctx.obj["config"], ctx.obj["db_path"])

    if not data:
        console.print("[yellow]No data found[/yellow]")
        return
    if as_json:
        _print_json(data)
        return

    table = Table(title=f"Average hourly demand for {consumer}, {month}")
    table.add_column("Hour", style="cyan")
    for day_type in data:
        table.add_column(day_type, justify="right")
    for hour in range(24):
        label = f"{hour:02d}:00"
        table.add_row(label, *(_fmt(data[t].get(label)) for t in data))
    console.print(table)


def _pattern_rows_table(title: str, rows: list[dict]) -> Table:
    table = Table(title=title)
    table.add_column("Consumer", style="cyan")
    table.add_column("Name")
    table.add_column("Days", justify="right")
    for category in ("Flat", "DayDominant", "NightDominant", "Shift", "Random"):
        table.add_column(category, justify="right")
    table.add_column("Shift window")
    table.add_column("Dominant")
    for row in rows:
        window = row["shift_window"]
        table.add_row(
            row["consumer_id"],
            row["short_name"] or "",
            str(row["days_of_data"]),
            *(str(n) for n in row["counts"].values()),
            f"{window[0]:02d}:00-{window[1]:02d}:00" if window else "",
            row["dominant"] or "",
        )
    return table


@cli.command()
@click.option("--consumer", help="Only this consumer")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def patterns(ctx, consumer, as_json):
    """Count day patterns (flat, day/night, shift, random) per consumer."""
    rows = summary.pattern_table(ctx.obj["config"], ctx.obj["db_path"], consumer)

    if as_json:
        _print_json(rows)
        return
    if not rows:
        console.print("[yellow]No data found[/yellow]")
        return
    console.print(_pattern_rows_table("Consumption patterns", rows))


@cli.command()
@click.argument("group_type")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def group(ctx, group_type, as_json):
    """List consumers whose most common day pattern is GROUP_TYPE."""
    try:
        rows = summary.group_consumers(group_type, ctx.obj["config"], ctx.obj["db_path"])
    except ValueError as e:
        console.print(f"[red]Error: {e}[/red]")
        ctx.exit(1)

    if as_json:
        _print_json(rows)
        return
    if not rows:
        console.print("[yellow]No consumers in this group[/yellow]")
        return
    console.print(_pattern_rows_table(f"Consumers in group {group_type}", rows))


@cli.command("peak-variance")
@click.option("--consumer", help="Only this consumer")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def peak_variance(ctx, consumer, as_json):
    """Change between adjacent hours around the morning and evening peaks."""
    data = summary.peak_variance_report(ctx.obj["config"], ctx.obj["db_path"], consumer)

    if not data:
        console.print("[yellow]No data found[/yellow]")
        return
    if as_json:
        _print_json(data)
        return

    for cid, sections in data.items():
        for section, slots in sections.items():
            table = Table(title=f"{cid} - {section} peak variance")
            table.add_column("Slot", style="cyan")
            table.add_column("Change", justify="right")
            for slot, pct in slots.items():
                color = "red" if pct > 0 else "green"
                table.add_row(slot, f"[{color}]{pct:+.2f}%[/{color}]")
            console.print(table)


@cli.command("rank")
@click.option("--group", "group_type", default="all", help="all, flat, day, night, shift or random")
@click.option("--direction", type=click.Choice(["desc", "asc"]), help="Sort direction")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def rank_cmd(ctx, group_type, direction, as_json):
    """Rank consumers by the configured metric."""
    config = ctx.obj["config"]
    try:
        rows = summary.ranking_report(config, ctx.obj["db_path"], group_type, direction)
    except ValueError as e:
        console.print(f"[red]Error: {e}[/red]")
        ctx.exit(1)

    if as_json:
        _print_json(rows)
        return
    if not rows:
        console.print("[yellow]No data found[/yellow]")
        return

    table = Table(title=f"Ranking by {config.ranking.metric}")
    table.add_column("Rank", justify="right", style="cyan")
    table.add_column("Consumer")
    table.add_column("Name")
    table.add_column("Score", justify="right")
    show_group = any("group" in row for row in rows)
    if show_group:
        table.add_column("Group")
    for row in rows:
        cells = [str(row["rank"]), row["consumer_id"], row["short_name"] or "", f"{row['metric_score']:.4f}"]
        if show_group:
            cells.append(row.get("group") or "")
        table.add_row(*cells)
    console.print(table)


if __name__ == "__main__":
    cli()
