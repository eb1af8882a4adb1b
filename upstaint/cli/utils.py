import asyncio
import functools
import sys

from pydantic import ValidationError
from rich.console import Console
from rich.markup import escape

from upstaint.kube.client import KubeError
from upstaint.kube.config import KubeConfigError
from upstaint.nut.client import NUTError

console = Console()


def handle_async_command(async_func):
    """Decorator to handle async CLI commands."""
    @functools.wraps(async_func)
    def wrapper(*args, **kwargs):
        try:
            return asyncio.run(async_func(*args, **kwargs))
        except KeyboardInterrupt:
            console.print("\n[yellow]Operation cancelled by user[/yellow]")
            sys.exit(1)
        except ValidationError as e:
            console.print(f"[red]Invalid configuration: {escape(str(e))}[/red]")
            sys.exit(1)
        except NUTError as e:
            console.print(f"[red]NUT server error: {escape(str(e))}[/red]")
            sys.exit(1)
        except KubeConfigError as e:
            console.print(f"[red]Cluster configuration error: {escape(str(e))}[/red]")
            sys.exit(1)
        except KubeError as e:
            console.print(f"[red]Kubernetes API error: {escape(str(e))}[/red]")
            sys.exit(1)
        except Exception as e:
            console.print(f"[red]Error: {escape(str(e))}[/red]")
            sys.exit(1)
    return wrapper
