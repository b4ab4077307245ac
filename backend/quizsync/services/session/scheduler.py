import time
from typing import Callable, Set, Tuple

from quizsync import socketio


_scheduled_keys: Set[Tuple] = set()


def schedule_grace(app, delay: float, key: Tuple, fn: Callable, *args) -> bool:
    """Run ``fn(*args)`` once ``delay`` seconds from now, inside an app context.

    - No-ops in TESTING mode (tests drive the second phase explicitly)
    - Ensures a single pending timer per ``key``
    - ``fn`` must re-check session state itself; the window is a soft
      debounce, not a lock
    """
    if app.config.get('TESTING') and not app.config.get('ENABLE_SCHEDULER_IN_TESTS'):
        return False

    if key in _scheduled_keys:
        app.logger.info(f"[timer-skip] key={key} already scheduled")
        return False
    _scheduled_keys.add(key)
    app.logger.info(f"[timer-set] key={key} delay={delay}s")

    def _worker():
        if delay > 0:
            time.sleep(delay)
        with app.app_context():
            _scheduled_keys.discard(key)
            app.logger.info(f"[timer-fire] key={key}")
            try:
                fn(*args)
            except Exception:
                app.logger.exception(f"[timer-error] key={key}")

    socketio.start_background_task(_worker)
    return True
