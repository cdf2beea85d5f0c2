"""Lifecycle hooks for entities."""

import logging

logger = logging.getLogger("recordmap")


class LifecycleHooks:
    """Mixin providing the create/update/delete hooks.

    Every class in the MRO may define an ``on_<event>`` method; `trigger`
    calls each distinct one, most derived first, so subclasses do not need
    to call ``super()``. A ``before`` hook returning False vetoes the
    operation and stops the chain.
    """

    def trigger(self, event_name: str, *args, **kwargs) -> bool:
        """Run the ``on_<event_name>`` hooks; return False if one of them vetoed."""
        method_name = f"on_{event_name}"
        called_methods = []
        for cls in type(self).__mro__:
            if cls is LifecycleHooks:
                continue
            method = cls.__dict__.get(method_name)
            if method is None or method in called_methods:
                continue
            called_methods.append(method)
            if method(self, *args, **kwargs) is False:
                logger.warning("%s.%s vetoed %s", cls.__name__, method_name, event_name)
                return False
        return True

    def on_loaded(self):
        """Called after the entity was populated from the store."""

    def on_before_create(self) -> bool:
        """Called before inserting; return False to cancel. Data is in `self.get_data()`."""
        return True

    def on_after_create(self):
        """Called after a successful insert."""

    def on_before_update(self) -> bool:
        """Called before updating; return False to cancel. Changes are in `self.get_changes()`."""
        return True

    def on_after_update(self):
        """Called after a successful update."""

    def on_before_delete(self) -> bool:
        """Called before deleting; return False to cancel."""
        return True

    def on_after_delete(self):
        """Called after a successful delete."""
