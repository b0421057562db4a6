"""
Base decorator factory for CLI parameter injection.

Provider modules use _create_param_decorator to add a group of options to a
Typer callback without spelling them out in its signature.
"""

from functools import wraps
from typing import Callable
import inspect


def _create_param_decorator(
    param_specs: list[tuple[str, inspect.Parameter]],
    context_key: str,
    param_extractor: Callable,
) -> Callable:
    """
    Factory for creating parameter injection decorators.

    Args:
        param_specs: List of (param_name, Parameter) tuples to inject
        context_key: Key to store extracted params in ctx.obj
        param_extractor: Function popping the injected params out of kwargs
            and returning them as a dict

    Returns:
        Decorator function that injects parameters
    """
    def decorator(func: Callable) -> Callable:
        sig = inspect.signature(func)
        params = list(sig.parameters.values())
        params.extend([param for _, param in param_specs])
        new_sig = sig.replace(parameters=params)

        @wraps(func)
        def wrapper(*args, **kwargs):
            # ctx is the first positional arg in Typer callbacks
            ctx = args[0] if args else kwargs.get('ctx')

            params = param_extractor(kwargs)
            if ctx:
                ctx.ensure_object(dict)
                ctx.obj[context_key] = params

            return func(*args, **kwargs)

        # Typer inspects the signature to build the options
        wrapper.__signature__ = new_sig
        return wrapper

    return decorator
