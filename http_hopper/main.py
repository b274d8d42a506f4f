"""CLI interface for HTTP Hopper.

Fetches documents while following redirects, shows the header chain of
every hop, and parses raw header text from files or stdin.
"""

import json
import sys
from datetime import datetime, timezone
from typing import Optional, Tuple, Dict

import click
from rich.console import Console
from rich.markup import escape
from rich.table import Table
from rich import box

from http_hopper import __version__
from http_hopper.core.client import RedirectingClient
from http_hopper.core.config import ClientConfig, TransportKind
from http_hopper.core.exceptions import ConfigurationError, InvalidResponseError
from http_hopper.core.models import HttpMethod, RequestSpec, ResponseResult
from http_hopper.headers.block import HeaderBlock, display_name
from http_hopper.headers.cookies import Cookie
from http_hopper.utils.helpers import parse_url, truncate
from http_hopper.utils.logging import setup_logging, console, RequestLogger, HOPPER_THEME


# Exit codes
EXIT_OK = 0
EXIT_NOT_OK = 1
EXIT_FAILED = 2

# Documents and tables go to stdout; diagnostics use the stderr console
out = Console(theme=HOPPER_THEME)


@click.group()
@click.version_option(version=__version__, prog_name="http-hopper")
def cli():
    """HTTP Hopper: redirect-following HTTP client

    Fetch documents, follow Location headers across hops and inspect the
    headers of every response along the way.
    """
    pass


def _load_config(
    config_path: Optional[str],
    verbose: bool,
    quiet: bool,
) -> ClientConfig:
    if config_path:
        config = ClientConfig.from_yaml(config_path)
    else:
        config = ClientConfig()

    config.verbose = config.verbose or verbose
    config.quiet = config.quiet or quiet
    return config


def _apply_overrides(
    config: ClientConfig,
    follow: Optional[bool],
    max_hops: Optional[int],
    transport: Optional[str],
    proxy: Optional[str],
    proxy_user: Optional[str],
    timeout: Optional[float],
    insecure: bool,
) -> None:
    """Command-line flags win over the configuration file."""
    if follow is not None:
        config.follow_redirects = follow
    if max_hops is not None:
        config.max_hops = max_hops
    if transport:
        config.network.transport = TransportKind(transport)
    if proxy:
        config.network.proxy_url = proxy
    if proxy_user:
        user, _, password = proxy_user.partition(":")
        config.network.proxy_user = user
        config.network.proxy_password = password or None
    if timeout is not None:
        config.network.connect_timeout = timeout
        config.network.read_timeout = timeout
        config.network.write_timeout = timeout
    if insecure:
        config.network.verify_ssl = False


def _parse_headers(header_tuples: Tuple[str, ...]) -> HeaderBlock:
    """Parse ``-H 'Name: value'`` options into a header block."""
    block = HeaderBlock()
    for h in header_tuples:
        if ":" in h:
            key, value = h.split(":", 1)
            block.add(key.strip(), value.strip())
    return block


def _parse_pairs(pairs: Tuple[str, ...], option: str) -> Dict[str, str]:
    result = {}
    for pair in pairs:
        if "=" not in pair:
            raise click.BadParameter(f"expected name=value, got {pair!r}", param_hint=option)
        key, value = pair.split("=", 1)
        result[key.strip()] = value
    return result


def _build_client(config: ClientConfig, uri: str) -> RedirectingClient:
    errors = config.validate()
    if errors:
        raise ConfigurationError(errors)

    request_logger = RequestLogger(verbose=config.verbose, quiet=config.quiet)
    return RedirectingClient(uri, config=config, request_logger=request_logger)


def _exit_code(result: ResponseResult) -> int:
    if not result.connection_ok or result.redirect_limit_exceeded:
        return EXIT_FAILED
    return EXIT_OK if result.response_ok else EXIT_NOT_OK


def _normalize_target(target: str) -> str:
    # Auto-add http:// if no scheme provided
    if "://" not in target:
        target = f"http://{target}"
    if not parse_url(target).host:
        console.print(f"[red]Error:[/red] Invalid URL: {escape(target)}")
        sys.exit(EXIT_FAILED)
    return target


def _common_options(func):
    """Options shared by the network commands."""
    options = [
        click.option("--config", "-c", "config_path", type=click.Path(exists=True, dir_okay=False),
                     help="YAML configuration file"),
        click.option("--follow/--no-follow", default=None,
                     help="Follow Location headers (default: from config, else on)"),
        click.option("--max-hops", type=int, default=None,
                     help="Maximum number of exchanges per request"),
        click.option("--transport", "-t", type=click.Choice([k.value for k in TransportKind]),
                     default=None, help="Transport implementation"),
        click.option("--proxy", type=str, default=None,
                     help="Forward proxy URL (e.g., http://proxy:3128)"),
        click.option("--proxy-user", type=str, default=None,
                     help="Proxy credentials as user:password"),
        click.option("--timeout", type=float, default=None,
                     help="Connect/read/write timeout in seconds"),
        click.option("--insecure", "-k", is_flag=True,
                     help="Skip TLS certificate verification"),
        click.option("--header", "-H", multiple=True,
                     help="Extra request header (e.g., -H 'Accept: text/html')"),
        click.option("--verbose", "-v", is_flag=True, help="Verbose output"),
        click.option("--quiet", "-q", is_flag=True, help="Quiet mode (minimal output)"),
    ]
    for option in reversed(options):
        func = option(func)
    return func


def _prepare(
    target: str,
    config_path: Optional[str],
    follow: Optional[bool],
    max_hops: Optional[int],
    transport: Optional[str],
    proxy: Optional[str],
    proxy_user: Optional[str],
    timeout: Optional[float],
    insecure: bool,
    verbose: bool,
    quiet: bool,
) -> RedirectingClient:
    """Load configuration, set up logging and build the client."""
    try:
        config = _load_config(config_path, verbose, quiet)
        _apply_overrides(config, follow, max_hops, transport, proxy, proxy_user, timeout, insecure)
        setup_logging(level="DEBUG" if config.debug else ("INFO" if config.verbose else "WARNING"),
                      quiet=config.quiet)
        return _build_client(config, target)
    except ConfigurationError as e:
        console.print(f"[red]Configuration error:[/red] {escape(str(e))}")
        sys.exit(EXIT_FAILED)


@cli.command()
@click.argument("target")
@click.option(
    "--method", "-X",
    type=click.Choice([m.value for m in HttpMethod], case_sensitive=False),
    default="GET",
    help="HTTP method"
)
@click.option(
    "--data", "-d",
    multiple=True,
    help="Form field as name=value (repeatable)"
)
@click.option(
    "--data-raw",
    type=str,
    default=None,
    help="Raw request body, sent verbatim"
)
@click.option(
    "--file", "-F",
    "files",
    multiple=True,
    help="File upload as name=path (repeatable, implies multipart)"
)
@click.option(
    "--include", "-i",
    is_flag=True,
    help="Print the headers of every hop before the body"
)
@click.option(
    "--json", "as_json",
    is_flag=True,
    help="Print a JSON summary of the hop chain instead of the body"
)
@_common_options
def fetch(
    target: str,
    method: str,
    data: tuple,
    data_raw: Optional[str],
    files: tuple,
    include: bool,
    as_json: bool,
    config_path: Optional[str],
    follow: Optional[bool],
    max_hops: Optional[int],
    transport: Optional[str],
    proxy: Optional[str],
    proxy_user: Optional[str],
    timeout: Optional[float],
    insecure: bool,
    header: tuple,
    verbose: bool,
    quiet: bool,
):
    """Fetch TARGET, following redirects.

    Exit status is 0 when the final response is ok, 1 when it is not,
    and 2 when no response was received or the hop limit was hit.

    Examples:

      http-hopper fetch http://example.com/

      http-hopper fetch http://example.com/login -X POST -d user=alice -d pass=secret

      http-hopper fetch http://example.com/ --no-follow -i
    """
    if data and data_raw is not None:
        raise click.UsageError("--data and --data-raw are mutually exclusive")
    if files and data_raw is not None:
        raise click.UsageError("--file cannot be combined with --data-raw")

    target = _normalize_target(target)
    client = _prepare(target, config_path, follow, max_hops, transport, proxy,
                      proxy_user, timeout, insecure, verbose, quiet)

    body = data_raw if data_raw is not None else (_parse_pairs(data, "--data") or None)
    spec = RequestSpec(
        uri=target,
        method=HttpMethod.parse(method),
        headers=_parse_headers(header),
        body=body,
        files=_parse_pairs(files, "--file"),
    )

    with client:
        try:
            result = client.execute(spec)
        except OSError as e:
            # Unreadable upload files
            console.print(f"[red]Error:[/red] {escape(str(e))}")
            sys.exit(EXIT_FAILED)

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
    elif result.connection_ok:
        click.echo(result.raw if include else result.body, nl=False)

    sys.exit(_exit_code(result))


@cli.command()
@click.argument("target")
@_common_options
def headers(
    target: str,
    config_path: Optional[str],
    follow: Optional[bool],
    max_hops: Optional[int],
    transport: Optional[str],
    proxy: Optional[str],
    proxy_user: Optional[str],
    timeout: Optional[float],
    insecure: bool,
    header: tuple,
    verbose: bool,
    quiet: bool,
):
    """Send a HEAD request to TARGET and show the headers of every hop."""
    target = _normalize_target(target)
    client = _prepare(target, config_path, follow, max_hops, transport, proxy,
                      proxy_user, timeout, insecure, verbose, quiet)

    with client:
        result = client.execute(RequestSpec(
            uri=target,
            method=HttpMethod.HEAD,
            headers=_parse_headers(header),
        ))

    if result.connection_ok:
        _print_chain(result.headers, result.hops)

    sys.exit(_exit_code(result))


@cli.command()
@click.argument("source", type=click.File("r"), default="-")
@click.option("--verbose", "-v", is_flag=True, help="Log malformed lines")
def parse(source, verbose: bool):
    """Parse raw HTTP header text from SOURCE (default: stdin).

    Every status line starts a new block; the blocks are shown oldest
    first, followed by any cookies they carry.
    """
    setup_logging(level="DEBUG" if verbose else "WARNING", quiet=not verbose)

    text = source.read()
    try:
        block, body = HeaderBlock.parse_document(text)
        if not any(len(b) for b in block.chain()):
            raise InvalidResponseError("No header lines found", text)
    except InvalidResponseError as e:
        console.print(f"[red]Error:[/red] {escape(e.message)}")
        sys.exit(EXIT_NOT_OK)

    _print_chain(block)
    _print_cookies(block)

    if body:
        out.print(f"\n[dim]Body: {len(body)} characters[/dim]")

    sys.exit(EXIT_OK)


def _print_chain(block: HeaderBlock, hops: Optional[list] = None):
    """Print one table per block, oldest first."""
    uris = iter(hops or [])

    for current in block.chain():
        title = escape(current.start_line() or "(no start line)")
        status = current.status_code
        # Interim 1xx blocks have no hop URI of their own
        if hops and (status is None or status >= 200):
            uri = next(uris, None)
            if uri:
                title = f"{title}  [dim]{escape(truncate(uri, 60))}[/dim]"

        out.print(f"[bold]{title}[/bold]")
        table = Table(box=box.ROUNDED)
        table.add_column("Header", style="header")
        table.add_column("Value", style="white")

        for name, value in current.header_lines():
            table.add_row(escape(name), escape(value))

        out.print(table)


def _cookie_attributes(cookie: Cookie) -> str:
    attributes = []
    if cookie.domain:
        attributes.append(f"Domain={cookie.domain}")
    if cookie.path:
        attributes.append(f"Path={cookie.path}")
    if cookie.expires is not None:
        try:
            expires = datetime.fromtimestamp(cookie.expires, tz=timezone.utc).isoformat()
        except (OverflowError, ValueError, OSError):
            expires = str(cookie.expires)
        attributes.append(f"Expires={expires}")
    if cookie.secure:
        attributes.append("Secure")
    if cookie.http_only:
        attributes.append("HttpOnly")
    for key, value in cookie.attributes.items():
        attributes.append(f"{display_name(key)}={value}" if value else display_name(key))
    return "; ".join(attributes)


def _print_cookies(block: HeaderBlock):
    cookies = []
    for current in block.chain():
        cookies.extend(("set-cookie", c) for c in current.get_set_cookies())
        cookies.extend(("cookie", c) for c in current.get_cookies())

    if not cookies:
        return

    table = Table(title="Cookies", box=box.ROUNDED, title_justify="left")
    table.add_column("Source", style="cyan")
    table.add_column("Name", style="header")
    table.add_column("Value", style="white")
    table.add_column("Attributes", style="dim")

    for source, cookie in cookies:
        table.add_row(
            source,
            escape(cookie.name),
            escape(truncate(cookie.value, 40)),
            escape(_cookie_attributes(cookie)),
        )

    out.print(table)


def main():
    """Main entry point."""
    cli()


if __name__ == "__main__":
    main()
