"""
Wyvern Exchange Protocol Package

Core imports are lazily loaded so that importing a single submodule does not
pull in the whole protocol. For direct module access, import from submodules:

    from wyvern.chain import ChainState
    from wyvern.registry import ProxyRegistry
    from wyvern.exchange import Exchange, Order, Call
"""

# Lazy imports to avoid loading everything at package import
def __getattr__(name):
    """Lazy module loading."""
    if name == 'ChainState':
        from .chain import ChainState
        return ChainState
    elif name == 'ProxyRegistry':
        from .registry import ProxyRegistry
        return ProxyRegistry
    elif name == 'Exchange':
        from .exchange import Exchange
        return Exchange
    elif name == 'load_config':
        from .config import load_config
        return load_config
    raise AttributeError(f"module 'wyvern' has no attribute {name!r}")

__all__ = ['ChainState', 'ProxyRegistry', 'Exchange', 'load_config']
