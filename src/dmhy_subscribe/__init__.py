"""dmhy-subscribe - Track episodic releases on share.dmhy.org and hand them to a download client.

A subscription is a series name plus search keywords. Each update queries the
feed for new threads (releases), files them under their subscription newest
first, and optionally hands them to aria2 or deluge.

Programmatic API Example:
    >>> import dmhy_subscribe
    >>>
    >>> cfg = dmhy_subscribe.Config(client="aria2", destination="~/anime")
    >>> db = dmhy_subscribe.Database(cfg)
    >>> db.add(dmhy_subscribe.Subscription.from_subscribable("Show,1080P,BIG5"))
    >>> db.save()
    >>> for thread in db.query("sid", "A1B").get_threads("1,3..5"):
    ...     db.download(thread).result()

CLI Usage:
    $ dmhy add 'Show,1080P,BIG5'
    $ dmhy update
    $ dmhy dl A1B-1,3..5
"""

from __future__ import annotations

# Defined before the submodule imports below; store and database read it
__version__ = "1.0.0"

from .config import Config, load_config, load_config_file  # noqa: E402
from .database import Database  # noqa: E402
from .models import Thread  # noqa: E402
from .selector import EpisodeSelector  # noqa: E402
from .subscription import Subscription  # noqa: E402

__all__ = [
    "Config",
    "Database",
    "EpisodeSelector",
    "Subscription",
    "Thread",
    "load_config",
    "load_config_file",
    "__version__",
]
