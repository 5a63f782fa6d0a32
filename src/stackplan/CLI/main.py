"""
Command Line Interface for stackplan.
"""
import os
import signal

import click

from .. import __version__
from ..CONVERTERS.to_text import PlanTextConverter
from ..EXECUTORS.command_executor import CommandExecutor
from ..EXECUTORS.dry_run_executor import DryRunExecutor
from ..EXECUTORS.plan_runner import PlanRunner
from ..MANAGERS.environment_manager import EnvironmentManager
from ..MODELS.errors import ExecutionError, StackplanError
from ..PARSERS.topology_parser import TopologyParser
from ..PARSERS.topology_serializer import TopologySerializer
from ..RUNNERS.dependency_resolver import DependencyResolver
from ..RUNNERS.plan_renderer import PlanRenderer
from ..UTILS.log_config import setup_logging

EXIT_CANCELLED = 130

topology_file = click.argument('file', type=click.Path(dir_okay=False))
service_names = click.argument('services', nargs=-1)


def _fail(ctx, error: Exception, code: int = 1):
    click.echo(f"Error: {error}", err=True)
    ctx.exit(code)


def _load(ctx, file):
    """
    Parses the topology file, or exits with code 1.
    """
    parser = TopologyParser(project_name=ctx.obj['project_name'])
    try:
        return parser.parse(file)
    except StackplanError as e:
        _fail(ctx, e)


def _render(ctx, file, services):
    """
    Parses, resolves and renders, or exits with code 1.
    """
    topology = _load(ctx, file)
    try:
        order = DependencyResolver().resolve_order(topology, services or None)
        context = EnvironmentManager().get_context(ctx.obj['env_files'])
        return PlanRenderer(context).render(topology, order)
    except StackplanError as e:
        _fail(ctx, e)


@click.group(context_settings={'auto_envvar_prefix': 'STACKPLAN'})
@click.option('--env-file', 'env_files', multiple=True, type=click.Path(dir_okay=False),
              help='Read variables from this .env file (repeatable, later files win)')
@click.option('--project-name', '-p', default=None, help='Project name when the file sets none')
@click.option('--verbose', '-v', is_flag=True, help='Log debug output to stderr')
@click.version_option(version=__version__)
@click.pass_context
def cli(ctx, env_files, project_name, verbose):
    """
    stackplan - validate service topologies and render bring-up plans.

    Reads a compose-style topology file, orders its services by their
    dependencies and renders the build, volume, start and wait steps.
    """
    setup_logging(verbose)
    ctx.ensure_object(dict)
    ctx.obj['env_files'] = env_files
    ctx.obj['project_name'] = project_name


@cli.command()
@topology_file
@click.pass_context
def validate(ctx, file):
    """Check that a topology parses and has no dependency cycles."""
    topology = _load(ctx, file)
    try:
        order = DependencyResolver().resolve_order(topology)
    except StackplanError as e:
        _fail(ctx, e)
    click.echo(f"{file}: OK ({len(topology.services)} services, {len(topology.volumes)} volumes)")
    click.echo(f"Start order: {', '.join(order) if order else '(empty)'}")


@cli.command()
@topology_file
@service_names
@click.option('--json', 'as_json', is_flag=True, help='Print the plan as JSON')
@click.option('--show-env', is_flag=True, help='Print resolved environment values')
@click.pass_context
def plan(ctx, file, services, as_json, show_env):
    """Print the steps that would bring the services up."""
    rendered = _render(ctx, file, services)
    if as_json:
        click.echo(rendered.to_json())
    else:
        click.echo(PlanTextConverter(show_env=show_env).convert(rendered), nl=False)


@cli.command()
@topology_file
@service_names
@click.option('--engine', default='docker', show_default=True, help='Container engine binary')
@click.option('--timeout', type=float, default=None, help='Seconds each engine command may take')
@click.option('--dry-run', is_flag=True, help='Only print the steps')
@click.pass_context
def run(ctx, file, services, engine, timeout, dry_run):
    """Bring the services up by executing the plan."""
    rendered = _render(ctx, file, services)
    if dry_run:
        executor = DryRunExecutor()
    else:
        base_dir = os.path.dirname(os.path.abspath(file))
        executor = CommandExecutor(engine=engine, base_dir=base_dir, timeout=timeout)

    def report(step, result):
        status = "done" if result.success else f"failed ({result.exit_code})"
        click.echo(f"{step.describe()}: {status}")

    runner = PlanRunner(executor, on_step=report)
    previous = signal.getsignal(signal.SIGINT)
    try:
        signal.signal(signal.SIGINT, lambda signum, frame: runner.cancel())
    except ValueError:
        # not the main thread
        previous = None
    try:
        runner.run(rendered)
    except ExecutionError as e:
        _fail(ctx, e, e.exit_code)
    finally:
        if previous is not None:
            signal.signal(signal.SIGINT, previous)

    if runner.cancelled:
        click.echo("Cancelled.", err=True)
        ctx.exit(EXIT_CANCELLED)
    click.echo(f"{len(rendered)} steps completed.")


@cli.command()
@topology_file
@click.pass_context
def config(ctx, file):
    """Print the topology in normalized form."""
    topology = _load(ctx, file)
    click.echo(TopologySerializer().dump(topology), nl=False)


def main():
    """
    Main entry point for the CLI.
    """
    cli(obj={})


if __name__ == '__main__':
    main()
