"""JavaScript listener injected into the bank page while recording.

The listener reports clicks, text entry and select changes to Python
through a Playwright binding. Password fields never report their value.
"""

from dataclasses import dataclass, field


@dataclass
class RecorderConfig:
    """Configuration for the in-page listener."""

    binding_name: str = "__bankfeedRecord"
    global_name: str = "__bankfeedRecorder"
    # Elements inside these containers are overlay controls, not bank UI
    ignore_selectors: list[str] = field(
        default_factory=lambda: ["#recording-controls", "#playback-controls"]
    )
    text_preview_length: int = 50


class RecorderSnippetGenerator:
    """Generates the listener script for a recording session."""

    def __init__(self, config: RecorderConfig | None = None):
        self.config = config or RecorderConfig()

    def generate_listener_script(self) -> str:
        """Script that installs click/input/change listeners once per document."""
        config = self.config
        ignore = ", ".join(config.ignore_selectors)

        return f'''(() => {{
  if (window.{config.global_name}) return;
  var IGNORE = "{ignore}";
  var listeners = [];

  function cssEscape(v) {{
    return window.CSS && CSS.escape ? CSS.escape(v) : v.replace(/[^a-zA-Z0-9_-]/g, "\\\\$&");
  }}

  function selectorFor(el) {{
    if (el.id) return "#" + cssEscape(el.id);
    var testId = el.getAttribute("data-testid");
    if (testId) return '[data-testid="' + testId + '"]';
    var tag = el.tagName.toLowerCase();
    var name = el.getAttribute("name");
    if (name) return tag + '[name="' + name + '"]';
    var aria = el.getAttribute("aria-label");
    if (aria) return tag + '[aria-label="' + aria + '"]';
    var parts = [];
    var node = el;
    while (node && node.nodeType === 1 && node !== document.body) {{
      var part = node.tagName.toLowerCase();
      if (node.id) {{ parts.unshift("#" + cssEscape(node.id)); break; }}
      var parent = node.parentElement;
      if (parent) {{
        var same = Array.prototype.filter.call(parent.children, function(c) {{ return c.tagName === node.tagName; }});
        if (same.length > 1) part += ":nth-of-type(" + (same.indexOf(node) + 1) + ")";
      }}
      parts.unshift(part);
      node = parent;
    }}
    return parts.join(" > ");
  }}

  function labelFor(el) {{
    var aria = el.getAttribute("aria-label");
    if (aria) return aria;
    if (el.id) {{
      var lbl = document.querySelector('label[for="' + cssEscape(el.id) + '"]');
      if (lbl) return lbl.textContent.trim();
    }}
    var wrap = el.closest("label");
    if (wrap) return wrap.textContent.trim();
    return el.getAttribute("placeholder") || el.getAttribute("name") || "";
  }}

  function send(payload) {{
    payload.timestamp = Date.now();
    window.{config.binding_name}(payload);
  }}

  function on(type, handler) {{
    document.addEventListener(type, handler, true);
    listeners.push([type, handler]);
  }}

  on("click", function(e) {{
    var t = e.target;
    if (!t || !t.closest || (IGNORE && t.closest(IGNORE))) return;
    if (t.tagName === "SELECT" || t.tagName === "OPTION") return;
    send({{
      type: "click",
      selector: selectorFor(t),
      tag: t.tagName.toLowerCase(),
      text: (t.textContent || "").trim().substring(0, {config.text_preview_length}),
      label: labelFor(t)
    }});
  }});

  on("input", function(e) {{
    var t = e.target;
    if (!t || (IGNORE && t.closest(IGNORE))) return;
    if (t.tagName !== "INPUT" && t.tagName !== "TEXTAREA") return;
    var inputType = (t.getAttribute("type") || "text").toLowerCase();
    send({{
      type: "input",
      selector: selectorFor(t),
      tag: t.tagName.toLowerCase(),
      inputType: inputType,
      label: labelFor(t),
      value: inputType === "password" ? "" : t.value
    }});
  }});

  on("change", function(e) {{
    var t = e.target;
    if (!t || t.tagName !== "SELECT" || (IGNORE && t.closest(IGNORE))) return;
    send({{
      type: "select",
      selector: selectorFor(t),
      tag: "select",
      label: labelFor(t),
      value: t.value
    }});
  }});

  window.{config.global_name} = {{
    stop: function() {{
      listeners.forEach(function(l) {{ document.removeEventListener(l[0], l[1], true); }});
      listeners = [];
      window.{config.global_name} = null;
    }}
  }};
}})()'''

    def generate_stop_script(self) -> str:
        """Script that detaches the listener from the current document."""
        name = self.config.global_name
        return f"() => {{ if (window.{name}) window.{name}.stop(); }}"
