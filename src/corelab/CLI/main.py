# Copyright 2024 Michael Maillet, Damien Davison, Sacha Davison
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

import click

from ..exceptions import ConfigurationError, CorelabError
from ..MANAGERS.network_probe import HostNetworkProbe
from ..MANAGERS.orchestrator import Orchestrator
from ..PARSERS.catalog_parser import CatalogParser
from ..RUNNERS.dependency_resolver import DependencyResolver
from ..RUNTIME.docker_runtime import DockerRuntime
from ..UTILS.settings import Settings


def _fail(error: CorelabError):
    """
    Maps launcher errors onto click exits: usage errors exit 2, the rest 1.
    """
    if isinstance(error, ConfigurationError):
        raise click.UsageError(str(error))
    raise click.ClickException(f"{type(error).__name__}: {error}")


def _catalog(ctx):
    if 'catalog' not in ctx.obj:
        ctx.obj['catalog'] = CatalogParser().parse(ctx.obj.get('file'))
    return ctx.obj['catalog']


def _runtime(ctx):
    if 'runtime' not in ctx.obj:
        ctx.obj['runtime'] = DockerRuntime()
    return ctx.obj['runtime']


def _settings(ctx, **overrides):
    settings = ctx.obj.get('settings') or Settings.from_env()
    overrides = {k: v for k, v in overrides.items() if v is not None}
    return settings.model_copy(update=overrides) if overrides else settings


@click.group(context_settings={'help_option_names': ['-h', '--help']})
@click.option('--file', '-f', default=None, help='Component catalog (defaults to the bundled one)')
@click.pass_context
def cli(ctx, file):
    """
    corelab - local LTE core and radio lab launcher.

    Starts the network-function containers of a small telecom stack on the
    local Docker daemon, in dependency order, and waits until each one is
    ready.
    """
    ctx.ensure_object(dict)
    ctx.obj['file'] = file


@cli.command()
@click.argument('tags', nargs=-1, required=True)
@click.option('--no-deps', is_flag=True, help='Do not start dependencies that were not requested')
@click.option('--state-timeout', type=click.FloatRange(min=0, min_open=True), default=None, help='Seconds to wait for a container to run')
@click.option('--socket-timeout', type=click.FloatRange(min=0, min_open=True), default=None, help='Seconds to wait for a service port')
@click.pass_context
def run(ctx, tags, no_deps, state_timeout, socket_timeout):
    """Start components (e.g. EPC, HSS, MME, ENB) and wait until ready."""
    try:
        catalog = _catalog(ctx)
        # Reject bad requests before touching the host or the runtime.
        DependencyResolver(catalog).resolve(tags, include_dependencies=not no_deps)
        settings = _settings(ctx, state_timeout=state_timeout, socket_timeout=socket_timeout)
        probe = ctx.obj.get('probe') or HostNetworkProbe()
        host = probe.discover()
        click.echo(f"Host network: {host.interface} ({host.ip}), platform {settings.platform}, "
                   f"registry {settings.registry}")
        orchestrator = Orchestrator(catalog, _runtime(ctx), host, settings, waiter=ctx.obj.get('waiter'))
        results = orchestrator.run(tags, include_dependencies=not no_deps)
    except CorelabError as e:
        _fail(e)

    for tag, info in results.items():
        origin = "reused" if info.reused else "started"
        click.echo(f"{tag:6} {info.name:20} {info.ip or '-':16} {origin}")
    click.echo("Lab is up.")


@cli.command()
@click.argument('tags', nargs=-1, required=True)
@click.option('--no-deps', is_flag=True, help='Leave out dependencies that were not requested')
@click.pass_context
def plan(ctx, tags, no_deps):
    """Show the start order for components without starting anything."""
    try:
        catalog = _catalog(ctx)
        order = DependencyResolver(catalog).resolve(tags, include_dependencies=not no_deps)
    except CorelabError as e:
        _fail(e)
    for i, tag in enumerate(order, start=1):
        component = catalog.components[tag]
        note = "" if component.implemented else "  (not implemented, skipped)"
        click.echo(f"{i}. {tag:6} {catalog.container_name(tag) or '-':20}{note}")


@cli.command()
@click.pass_context
def ps(ctx):
    """List component container status"""
    try:
        orchestrator = Orchestrator(_catalog(ctx), _runtime(ctx), None, _settings(ctx))
        status = orchestrator.ps()
    except CorelabError as e:
        _fail(e)
    click.echo(f"{'TAG':8} {'STATUS':15}")
    click.echo("-" * 24)
    for tag, state in status.items():
        click.echo(f"{tag:8} {state:15}")


@cli.command()
@click.argument('tags', nargs=-1, required=True)
@click.option('--with-deps', is_flag=True, help='Also remove the dependencies of the components')
@click.pass_context
def down(ctx, tags, with_deps):
    """Force-remove component containers, dependents first."""
    try:
        orchestrator = Orchestrator(_catalog(ctx), _runtime(ctx), None, _settings(ctx))
        removed = orchestrator.down(tags, include_dependencies=with_deps)
    except CorelabError as e:
        _fail(e)
    click.echo(f"Removed: {', '.join(removed) or 'nothing'}")


@cli.command(name='tags')
@click.pass_context
def list_tags(ctx):
    """List known component tags and aliases"""
    try:
        catalog = _catalog(ctx)
    except CorelabError as e:
        _fail(e)
    for tag, component in catalog.components.items():
        deps = f" (needs {', '.join(component.depends_on)})" if component.depends_on else ""
        click.echo(f"{tag:6} {component.description}{deps}")
    for alias, members in catalog.aliases.items():
        click.echo(f"{alias:6} alias for {' '.join(members)}")


def main():
    """
    Main entry point for the CLI.
    """
    cli(obj={})

if __name__ == '__main__':
    main()
