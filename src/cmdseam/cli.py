"""Click entry point for the cmdseam command."""

import sys

import click

from cmdseam import __version__, config, factory, log, runner
from cmdseam.context import Context
from cmdseam.errors import ContextError, ContextKilledError, ExecNotFoundError

EXIT_TIMEOUT = 124
EXIT_CANNOT_EXECUTE = 126
EXIT_NOT_FOUND = 127


def _parse_env(pairs: tuple[str, ...]) -> dict[str, str] | None:
    if not pairs:
        return None
    env = {}
    for pair in pairs:
        key, sep, value = pair.partition("=")
        if not sep or not key:
            raise click.BadParameter(f"{pair!r} is not KEY=VALUE", param_hint="--env")
        env[key] = value
    return env


def _execute(
    argv: list[str],
    env: dict[str, str] | None = None,
    cwd: str | None = None,
    timeout: float | None = None,
    input: str | None = None,
) -> int:
    """Run argv with passthrough I/O and map failures to shell-style exit codes."""
    ctx = Context(timeout=timeout) if timeout else None
    try:
        return runner.run_streaming(argv, env=env, cwd=cwd, input=input, ctx=ctx)
    except ContextKilledError as e:
        log.error(f"{argv[0]}: timed out after {timeout:g}s ({e.process_state})")
        return EXIT_TIMEOUT
    except ContextError as e:
        log.error(f"{argv[0]}: {e}")
        return EXIT_TIMEOUT
    except FileNotFoundError as e:
        log.error(str(e))
        return EXIT_NOT_FOUND
    except OSError as e:
        log.error(f"{argv[0]}: {e}")
        return EXIT_CANNOT_EXECUTE
    finally:
        if ctx is not None:
            ctx.cancel()


@click.group()
@click.version_option(version=__version__, prog_name="cmdseam")
def main():
    """Run and inspect external commands."""


@main.command()
@click.argument("names", nargs=-1, required=True)
def which(names):
    """Resolve executable names against $PATH."""
    code = 0
    for name in names:
        try:
            click.echo(factory.look_path(name))
        except ExecNotFoundError as e:
            log.error(str(e))
            code = 1
    sys.exit(code)


@main.command(context_settings={"ignore_unknown_options": True})
@click.option("--timeout", type=float, default=None, help="Kill the command after this many seconds")
@click.option("--dir", "cwd", default=None, help="Working directory for the command")
@click.option("--env", "env_pairs", multiple=True, help="Extra environment variable (KEY=VALUE)")
@click.argument("command", nargs=-1, type=click.UNPROCESSED)
def run(timeout, cwd, env_pairs, command):
    """Run a command with passthrough output and exit with its exit code."""
    if not command:
        click.echo("Error: No command specified", err=True)
        sys.exit(1)
    env = _parse_env(env_pairs)
    log.command_start(command[0], " ".join(command))
    code = _execute(list(command), env=env, cwd=cwd, timeout=timeout)
    log.command_end(code)
    sys.exit(code)


@main.command(name="exec")
@click.argument("file", type=click.Path(dir_okay=False))
def exec_file(file):
    """Run the command described by a YAML command file."""
    try:
        spec = config.load_spec(file)
    except (OSError, ValueError) as e:
        log.error(str(e))
        sys.exit(1)

    log.command_start(spec.command[0], " ".join(spec.command))
    code = _execute(spec.command, env=spec.env, cwd=spec.dir, timeout=spec.timeout,
                    input=spec.stdin)
    log.command_end(code)
    sys.exit(code)


if __name__ == "__main__":
    main()
