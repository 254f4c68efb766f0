"""
Command Line Interface for GenBench
"""

import asyncio
import sys
from pathlib import Path

import click
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from .core.config import SUPPORTED_LANGUAGES, SUPPORTED_PROVIDERS, Config
from .core.errors import GenBenchError
from .core.metrics import BenchmarkSummary, RequirementsCheck
from .core.task import load_scenarios
from .evaluation.benchmark_runner import BenchmarkRunner, setup_benchmark_logging
from .evaluation.reporter import MetricsRecorder, validate_requirements

console = Console()


def display_summary(summary: BenchmarkSummary):
    table = Table(title=f"GenBench Session {summary.session}", style="cyan")
    table.add_column("Metric", style="bold")
    table.add_column("Value", justify="right")

    table.add_row("Scenarios", f"{summary.successful_scenarios}/{summary.total_scenarios} successful")
    table.add_row("Success rate", f"{summary.success_rate:.1f}%")
    table.add_row("Average quality", f"{summary.average_quality_score:.1f}")
    table.add_row("Average duration", f"{summary.average_duration_ms / 1000:.1f}s")
    table.add_row("Average coverage", f"{summary.average_test_coverage:.1f}%")
    table.add_row("Lines / files generated", f"{summary.total_lines_generated} / {summary.total_files_generated}")
    table.add_row("Tests passed / failed", f"{summary.total_tests_passed} / {summary.total_tests_failed}")
    table.add_row("API calls / tokens", f"{summary.total_api_calls} / {summary.total_tokens_used}")
    table.add_row("Estimated cost", f"${summary.total_cost:.4f}")
    table.add_row("Real provider / credentials",
                  f"{'✅' if summary.used_real_provider else '❌'} / {'✅' if summary.used_real_credentials else '❌'}")
    table.add_row("Provider-generated content", "✅" if summary.no_simulated_content else
                  f"❌ fallback in {', '.join(summary.scenarios_with_fallback)}")
    console.print(table)

    if summary.provider_breakdown:
        providers = Table(title="Per-provider results", style="cyan")
        providers.add_column("Provider", style="bold")
        providers.add_column("Scenarios", justify="right")
        providers.add_column("Success", justify="right")
        providers.add_column("Quality", justify="right")
        providers.add_column("Tokens", justify="right")
        for name, stats in summary.provider_breakdown.items():
            providers.add_row(name, str(stats["scenarios"]), f"{stats['success_rate']:.1f}%",
                              f"{stats['average_quality_score']:.1f}", str(stats["tokens_used"]))
        console.print(providers)

    if summary.failure_reasons:
        console.print("\n❌ Failure reasons:", style="bold red")
        for reason in summary.failure_reasons:
            console.print(f"  • {reason}", style="red")

    if summary.recommendations:
        console.print("\n💡 Recommendations:", style="bold yellow")
        for recommendation in summary.recommendations:
            console.print(f"  • {recommendation}", style="yellow")


def display_requirements(check: RequirementsCheck):
    if check.is_valid:
        console.print("\n✅ All benchmark requirements met", style="bold green")
        return
    console.print("\n🚫 Benchmark requirements violated:", style="bold red")
    for violation in check.violations:
        console.print(f"  • {violation}", style="red")


@click.group()
@click.version_option(version="0.1.0", prog_name="GenBench")
@click.pass_context
def main(ctx):
    """GenBench: validate and benchmark provider-generated multi-file projects"""
    ctx.ensure_object(dict)


@main.command()
@click.option('--config-path', '-c', type=click.Path(), help='Path to configuration file')
@click.option('--scenarios', 'scenarios_path', type=click.Path(), help='YAML file with a scenarios list')
@click.option('--session', help='Session identifier (default: timestamp based)')
@click.option('--provider', '-p', 'providers', multiple=True, type=click.Choice(SUPPORTED_PROVIDERS),
              help='Provider to benchmark (repeatable, default: all available)')
@click.option('--max-concurrent', '-j', type=int, help='Maximum scenarios running at once')
@click.option('--language', type=click.Choice(SUPPORTED_LANGUAGES), help='Default target language for scenarios')
@click.option('--log-file', type=click.Path(), help='Log file (default: logs/benchmark_<timestamp>.log)')
def run(config_path, scenarios_path, session, providers, max_concurrent, language, log_file):
    """Generate, validate and score every scenario"""
    console.print(Panel.fit("🚀 GenBench Run", style="bold blue"))

    try:
        config = Config.from_yaml(config_path)
        if language:
            config.generation.language = language

        errors = config.validate()
        if errors:
            console.print("❌ Configuration errors found:", style="bold red")
            for error in errors:
                console.print(f"  • {error}", style="red")
            if not any([config.api.openai_api_key, config.api.anthropic_api_key, config.api.google_api_key]):
                console.print("\n💡 Set at least one API key:", style="yellow")
                console.print("  export OPENAI_API_KEY='your-key-here'")
                console.print("  export ANTHROPIC_API_KEY='your-key-here'")
                console.print("  export GEMINI_API_KEY='your-key-here'")
            sys.exit(1)

        config.create_directories()
        setup_benchmark_logging(log_file or str(Path(config.data.log_dir) / f"benchmark_{session or 'run'}.log"))

        scenarios = load_scenarios(scenarios_path, default_language=config.generation.language)
        console.print(f"📋 Loaded {len(scenarios)} scenario(s)")

        async def _run():
            runner = BenchmarkRunner(config, session=session, show_progress=True)
            try:
                return await runner.run(scenarios, providers=list(providers) or None,
                                        max_concurrent=max_concurrent)
            finally:
                await runner.aclose()

        summary = asyncio.run(_run())

    except (GenBenchError, FileNotFoundError, ValueError) as e:
        console.print(f"❌ Run failed: {e}", style="bold red")
        sys.exit(1)

    display_summary(summary)
    check = validate_requirements(summary, config.benchmark)
    display_requirements(check)
    console.print(f"\n📁 Metrics saved to: {config.data.metrics_dir}")
    if not check.is_valid:
        sys.exit(1)


@main.command()
@click.option('--config-path', '-c', type=click.Path(), help='Path to configuration file')
@click.option('--session', required=True, help='Session identifier')
def summarize(config_path, session):
    """Recompute and save a session summary from its metrics records"""
    try:
        config = Config.from_yaml(config_path)
        recorder = MetricsRecorder.load_session(config.data.metrics_dir, session, policy=config.benchmark)
        if not recorder.session_metrics:
            console.print(f"❌ No metrics found for session '{session}' in {config.data.metrics_dir}",
                          style="bold red")
            sys.exit(1)
        summary = recorder.summarize()
        path = recorder.save_summary(summary)
    except (GenBenchError, FileNotFoundError, ValueError) as e:
        console.print(f"❌ Summarize failed: {e}", style="bold red")
        sys.exit(1)

    display_summary(summary)
    console.print(f"\n💾 Summary saved to: {path}", style="green")


@main.command()
@click.option('--config-path', '-c', type=click.Path(), help='Path to configuration file')
@click.option('--session', required=True, help='Session identifier')
def validate(config_path, session):
    """Check a session against the acceptance requirements"""
    try:
        config = Config.from_yaml(config_path)
        recorder = MetricsRecorder.load_session(config.data.metrics_dir, session, policy=config.benchmark)
    except (GenBenchError, FileNotFoundError, ValueError) as e:
        console.print(f"❌ Validation failed: {e}", style="bold red")
        sys.exit(1)

    if recorder.session_metrics:
        summary = recorder.summarize()
    else:
        summary = MetricsRecorder.load_summary(config.data.metrics_dir, session)
        if summary is None:
            console.print(f"❌ No metrics found for session '{session}'", style="bold red")
            sys.exit(1)

    console.print(f"📋 Session {session}: {summary.successful_scenarios}/{summary.total_scenarios} "
                  f"successful ({summary.success_rate:.1f}%)")
    check = recorder.validate_requirements(summary)
    display_requirements(check)
    if not check.is_valid:
        sys.exit(1)


@main.command()
@click.option('--config-path', '-c', type=click.Path(), help='Path to configuration file')
def status(config_path):
    """Show provider credentials and toolchain availability"""
    try:
        config = Config.from_yaml(config_path)
        runner = BenchmarkRunner(config)
        environment = runner.check_environment()
    except (GenBenchError, FileNotFoundError, ValueError) as e:
        console.print(f"❌ Status check failed: {e}", style="bold red")
        sys.exit(1)

    table = Table(title="GenBench Status", style="cyan")
    table.add_column("Component", style="bold")
    table.add_column("Status", justify="center")
    table.add_column("Details")

    for provider, info in environment["providers"].items():
        status_icon = "✅" if info["available"] else "❌"
        details = f"model {info['model']}" if info["available"] else "no API key configured"
        table.add_row(f"Provider: {provider}", status_icon, details)

    for language, executables in environment["toolchains"].items():
        missing = [exe for exe, path in executables.items() if not path]
        status_icon = "✅" if not missing else "⚠️"
        details = "all tools found" if not missing else f"missing: {', '.join(missing)}"
        table.add_row(f"Toolchain: {language}", status_icon, details)

    console.print(table)
    console.print("\n⚙️ Configuration:", style="bold")
    for key, value in config.summary().items():
        console.print(f"  {key}: {value}")


@main.command()
def version():
    """Show version information"""
    console.print("GenBench v0.1.0", style="bold green")


if __name__ == '__main__':
    main()
