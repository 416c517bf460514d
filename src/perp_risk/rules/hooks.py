from src.perp_common.errors import InvalidHookError, MaxHooksExceededError
from src.perp_market.domain.collaborators import HookRegistryProtocol


def check_hooks(hooks: tuple[str, ...], registry: HookRegistryProtocol, max_hooks: int) -> None:
    """Raise if there are more hooks than allowed or any hook is not whitelisted."""
    if len(hooks) > max_hooks:
        raise MaxHooksExceededError(len(hooks), max_hooks)
    for hook in hooks:
        if not registry.is_whitelisted(hook):
            raise InvalidHookError(hook)
