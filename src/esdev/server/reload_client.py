"""Browser side of the reload channel.

Served at ``ServerConfig.client_path`` and referenced from every HTML page
by :class:`~esdev.middleware.inject.HTMLInject` when watch mode is on.
``EventSource`` reconnects by itself after a dropped connection; any
``change`` event reloads the page.
"""

import json


def reload_client_js(event_path: str) -> str:
    """The reload client module, pointed at *event_path*."""
    return f"""\
/* esdev reload client */
const source = new EventSource({json.dumps(event_path)});
let reloading = false;
source.addEventListener("change", (event) => {{
  if (reloading) return;
  reloading = true;
  console.debug("[esdev] %s changed, reloading", event.data);
  source.close();
  location.reload();
}});
source.addEventListener("error", () => {{
  console.debug("[esdev] reload channel interrupted, reconnecting");
}});
"""


def reload_client_tag(client_path: str) -> str:
    """The ``<script>`` tag that loads the reload client."""
    return f'<script type="module" src="{client_path}"></script>'
