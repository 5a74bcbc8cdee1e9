"""Stylesheet and client-side script bundles embedded by the assembler.

The scripts are plain strings with `__MDPOINTER_*__` tokens that the
assembler replaces per render. Every message to the host goes through
`window.__mdpointerPost`, which writes `<CHANNEL_PREFIX><tag>:<payload>` to the
console where the viewer's page picks it up.
"""

from __future__ import annotations

CHANNEL_PREFIX = "mdpointer-channel:"
PICK_MARKER_ATTR = "data-pointer-pick"

STYLESHEET = """
:root {
  color-scheme: light;
  --fg: #24292e;
  --bg: #ffffff;
  --muted: #6a737d;
  --code-bg: #f6f8fa;
  --border: #dfe2e5;
  --link: #0366d6;
  --point: #0078d4;
  --callout-note-border: #2563eb;
  --callout-tip-border: #16a34a;
  --callout-important-border: #7c3aed;
  --callout-warning-border: #d97706;
  --callout-caution-border: #dc2626;
}
body {
  font-family: -apple-system, BlinkMacSystemFont, "Segoe UI", "Noto Sans", Helvetica, Arial, sans-serif;
  line-height: 1.6;
  padding: 40px;
  max-width: 980px;
  margin: 0 auto;
  background: var(--bg);
  color: var(--fg);
}
h1, h2, h3, h4, h5, h6 { margin-top: 24px; margin-bottom: 16px; font-weight: 600; line-height: 1.25; }
h1 { font-size: 2em; border-bottom: 1px solid #eaecef; padding-bottom: 0.3em; }
h2 { font-size: 1.5em; border-bottom: 1px solid #eaecef; padding-bottom: 0.3em; }
h3 { font-size: 1.25em; }
code {
  background: rgba(27, 31, 35, 0.05);
  padding: 0.2em 0.4em;
  border-radius: 3px;
  font-family: "Noto Sans Mono", Consolas, Monaco, "Courier New", monospace;
  font-size: 85%;
}
pre { background: var(--code-bg); padding: 16px; border-radius: 6px; overflow: auto; line-height: 1.55; }
pre code { background: transparent; padding: 0; font-size: 100%; }
.code-line { display: block; min-height: 1.55em; }
pre.diagram { background: transparent; text-align: center; }
pre.diagram svg { max-width: 100%; height: auto; }
pre.diagram[data-render-error] { background: var(--code-bg); color: #b91c1c; text-align: left; white-space: pre-wrap; }
blockquote { padding: 0 1em; color: var(--muted); border-left: 0.25em solid var(--border); margin: 0 0 16px 0; }
ul, ol { padding-left: 2em; margin-bottom: 16px; }
li { margin-bottom: 4px; }
table { border-collapse: collapse; width: 100%; margin-bottom: 16px; }
table th, table td { padding: 6px 13px; border: 1px solid var(--border); }
table th { font-weight: 600; background: var(--code-bg); }
table tr:nth-child(2n) { background: var(--code-bg); }
a { color: var(--link); text-decoration: none; }
a:hover { text-decoration: underline; }
img { max-width: 100%; box-sizing: border-box; }
hr { height: 0.25em; padding: 0; margin: 24px 0; background: #e1e4e8; border: 0; }
p { margin-bottom: 16px; }
.math-display { overflow-x: auto; margin: 0.8em 0; text-align: center; }
.math-error { color: #b91c1c; font-family: monospace; }
.callout { border-left: 0.25em solid var(--border); padding: 0.4em 1em; margin: 0 0 16px 0; border-radius: 4px; }
.callout-title { font-weight: 600; margin: 0 0 0.4em 0; }
.callout-note { border-left-color: var(--callout-note-border); }
.callout-tip { border-left-color: var(--callout-tip-border); }
.callout-important { border-left-color: var(--callout-important-border); }
.callout-warning { border-left-color: var(--callout-warning-border); }
.callout-caution { border-left-color: var(--callout-caution-border); }
[data-diagram-node] { cursor: pointer; }
.pointing-highlight {
  outline: 2px solid var(--point) !important;
  outline-offset: 2px;
  background-color: rgba(0, 120, 212, 0.1) !important;
  cursor: pointer !important;
}
.pieCircle.pointing-highlight, g.pointing-highlight:has(polygon) {
  outline: none !important;
  background-color: transparent !important;
  filter: drop-shadow(0 0 4px #0078d4) drop-shadow(0 0 2px #0078d4);
}
.code-line.pointing-highlight { outline: none !important; background-color: rgba(0, 120, 212, 0.25) !important; }
.pointing-flash { animation: pointing-flash 0.5s ease-out; }
@keyframes pointing-flash {
  0% { box-shadow: inset 0 0 0 100px rgba(0, 120, 212, 0.4); }
  100% { box-shadow: inset 0 0 0 100px transparent; }
}
"""

# Link click/hover signalling, in-page anchors, and Ctrl+wheel zoom.
CORE_INTERACTION_JS = """
(() => {
  window.__mdpointerPost = (message) => {
    console.debug("__MDPOINTER_CHANNEL__" + message);
  };
  const post = window.__mdpointerPost;

  const closestLink = (node) => {
    let target = node;
    while (target && target.nodeType !== 1) {
      target = target.parentNode;
    }
    return target && target.closest ? target.closest("a[href]") : null;
  };

  document.addEventListener("click", (event) => {
    const link = closestLink(event.target);
    if (!link) {
      return;
    }
    const href = link.getAttribute("href") || "";
    event.preventDefault();
    if (href.startsWith("#")) {
      const anchor = document.getElementById(decodeURIComponent(href.substring(1)));
      if (anchor) {
        anchor.scrollIntoView({ behavior: "smooth" });
      }
      return;
    }
    post("click:" + link.href);
  });

  document.addEventListener("mouseover", (event) => {
    const link = closestLink(event.target);
    if (link && !(link.getAttribute("href") || "").startsWith("#")) {
      post("hover:" + link.href);
    }
  });

  document.addEventListener("mouseout", (event) => {
    if (closestLink(event.target)) {
      post("leave:");
    }
  });

  document.addEventListener("wheel", (event) => {
    if (event.ctrlKey) {
      event.preventDefault();
      post("zoom:" + (event.deltaY < 0 ? "in" : "out"));
    }
  }, { passive: false });

  window.__mdpointerScrollToDataLine = (line) => {
    const target = document.querySelector('[data-line="' + String(line) + '"]');
    if (target) {
      target.scrollIntoView({ behavior: "smooth", block: "start" });
      return true;
    }
    return false;
  };
})();
"""

# Pointing mode: hover highlight preview, click flash, and the `pick:` signal.
# The highlight climb mirrors mdpointer.pointing.get_pointable_element; the
# authoritative resolution runs in Python on a DOM snapshot.
POINTING_JS = """
(() => {
  const post = window.__mdpointerPost;
  const state = { enabled: __MDPOINTER_POINTING_ENABLED__, highlight: null };

  const hasClass = (el, name) => !!(el.classList && el.classList.contains(name));
  const hasAttr = (el, name) => !!(el.hasAttribute && el.hasAttribute(name));
  const upFrom = (el) => el.parentElement || el.parentNode;
  const nearestLined = (el) => {
    let parent = el;
    while (parent && parent !== document.body && parent.nodeType === 1) {
      if (hasAttr(parent, "data-line")) {
        return parent;
      }
      parent = upFrom(parent);
    }
    return el;
  };

  const getPointable = (node) => {
    let el = node;
    while (el && el !== document.body && el !== document) {
      if (el.nodeType === 1) {
        const tag = el.tagName ? el.tagName.toLowerCase() : "";
        if (tag === "td" || tag === "th") return el;
        if (hasClass(el, "code-line")) return el;
        if (hasAttr(el, "data-diagram-node")) return el;
        if (hasAttr(el, "data-line")) return el;
        if (hasClass(el, "diagram")) return nearestLined(el);
        if (hasClass(el, "katex") || hasClass(el, "math")) return nearestLined(el);
      }
      el = upFrom(el);
    }
    return null;
  };

  const clearHighlight = () => {
    if (state.highlight) {
      state.highlight.classList.remove("pointing-highlight");
      state.highlight = null;
    }
  };

  window.__mdpointerSetPointingMode = (enabled) => {
    state.enabled = !!enabled;
    if (!state.enabled) {
      clearHighlight();
    }
    document.body.style.cursor = state.enabled ? "crosshair" : "";
    document.body.style.userSelect = state.enabled ? "none" : "";
    return state.enabled;
  };

  document.addEventListener("mouseover", (event) => {
    if (!state.enabled) return;
    const pointable = getPointable(event.target);
    if (pointable && pointable !== state.highlight) {
      clearHighlight();
      pointable.classList.add("pointing-highlight");
      state.highlight = pointable;
    }
  });

  document.addEventListener("mouseout", (event) => {
    if (!state.enabled || !state.highlight) return;
    const related = event.relatedTarget ? getPointable(event.relatedTarget) : null;
    if (related !== state.highlight) {
      clearHighlight();
    }
  });

  const flash = (pointable) => {
    let target = pointable;
    const hitFor = pointable.getAttribute("data-hit-area-for");
    if (hitFor && pointable.ownerSVGElement) {
      target = pointable.ownerSVGElement.getElementById(hitFor) || target;
    } else if (hasAttr(pointable, "data-hit-area") && pointable.previousElementSibling) {
      target = pointable.previousElementSibling;
    }
    if (target instanceof SVGElement) {
      target.style.transition = "none";
      target.style.filter = "drop-shadow(0 0 8px rgba(0, 120, 212, 1)) drop-shadow(0 0 4px rgba(0, 120, 212, 0.8))";
      window.setTimeout(() => {
        target.style.transition = "filter 0.7s ease-out";
        target.style.filter = "";
      }, 10);
      window.setTimeout(() => { target.style.transition = ""; }, 720);
      return;
    }
    target.classList.remove("pointing-flash");
    void target.offsetWidth;
    target.classList.add("pointing-flash");
    window.setTimeout(() => target.classList.remove("pointing-flash"), 500);
  };

  document.addEventListener("click", (event) => {
    if (!state.enabled) return;
    const pointable = getPointable(event.target);
    if (!pointable) return;
    event.preventDefault();
    event.stopPropagation();
    flash(pointable);
    document.querySelectorAll("[__MDPOINTER_PICK_ATTR__]").forEach((el) => el.removeAttribute("__MDPOINTER_PICK_ATTR__"));
    const target = event.target.nodeType === 1 ? event.target : upFrom(event.target);
    target.setAttribute("__MDPOINTER_PICK_ATTR__", "1");
    post("pick:");
  }, true);

  window.__mdpointerTakePickSnapshot = () => {
    const marked = document.querySelector("[__MDPOINTER_PICK_ATTR__]");
    if (!marked) {
      return "";
    }
    if (state.highlight) {
      state.highlight.classList.remove("pointing-highlight");
    }
    const snapshot = document.body.outerHTML;
    marked.removeAttribute("__MDPOINTER_PICK_ATTR__");
    if (state.highlight) {
      state.highlight.classList.add("pointing-highlight");
    }
    return snapshot;
  };

  document.addEventListener("DOMContentLoaded", () => {
    window.__mdpointerSetPointingMode(state.enabled);
  });
})();
"""

# Post-load hook: KaTeX per formula, Mermaid per diagram, then one
# `render-complete:` message with every collected error.
POST_LOAD_JS = """
(() => {
  const post = window.__mdpointerPost;
  const mermaidSources = __MDPOINTER_MERMAID_SOURCES__;
  const scriptNonce = document.currentScript ? document.currentScript.nonce : "";
  let mermaidLoadPromise = null;

  const lineOf = (el) => {
    let parent = el;
    while (parent && parent !== document.body && parent.nodeType === 1) {
      if (parent.hasAttribute("data-line")) {
        return parent.getAttribute("data-line");
      }
      parent = parent.parentElement;
    }
    return "?";
  };

  const errorText = (error) => (error && error.message ? error.message : String(error || "Unknown error"));

  const loadScript = (src) => new Promise((resolve, reject) => {
    const script = document.createElement("script");
    script.nonce = scriptNonce;
    script.src = src;
    script.onload = () => resolve(true);
    script.onerror = () => reject(new Error(`Failed to load ${src}`));
    document.head.appendChild(script);
  });

  const loadMermaid = () => {
    if (mermaidLoadPromise) {
      return mermaidLoadPromise;
    }
    mermaidLoadPromise = (async () => {
      for (const src of mermaidSources) {
        try {
          await loadScript(src);
          if (window.mermaid) {
            return true;
          }
        } catch (error) {
          console.error("mdpointer Mermaid script load failed:", src, error);
        }
      }
      return false;
    })();
    return mermaidLoadPromise;
  };

  const markError = (el, engine, message, errors) => {
    const entry = `[${engine} Line ${lineOf(el)}] ${message}`;
    errors.push(entry);
    el.setAttribute("data-render-error", entry);
    return entry;
  };

  const renderMath = (errors) => {
    const formulas = Array.from(document.querySelectorAll(".math[data-math]"));
    if (!formulas.length) {
      return;
    }
    if (typeof katex === "undefined") {
      formulas.forEach((el) => markError(el, "__MDPOINTER_FORMULA_ENGINE__", "KaTeX library not available", errors));
      return;
    }
    for (const el of formulas) {
      const source = el.getAttribute("data-math") || "";
      const displayMode = el.classList.contains("math-display") || el.getAttribute("data-display") === "true";
      try {
        katex.render(source, el, { displayMode, throwOnError: true });
        if (!el.hasAttribute("data-line")) {
          const line = lineOf(el);
          if (line !== "?") {
            el.setAttribute("data-line", line);
          }
        }
      } catch (error) {
        markError(el, "__MDPOINTER_FORMULA_ENGINE__", errorText(error), errors);
        el.classList.add("math-error");
        el.textContent = source;
      }
    }
  };

  const renderDiagrams = async (errors) => {
    const containers = Array.from(document.querySelectorAll("pre.diagram"));
    if (!containers.length) {
      return;
    }
    const loaded = await loadMermaid();
    if (!loaded) {
      containers.forEach((el) => markError(el, "__MDPOINTER_DIAGRAM_ENGINE__", "Mermaid library failed to load", errors));
      return;
    }
    window.mermaid.initialize({ startOnLoad: false, theme: "__MDPOINTER_MERMAID_THEME__", securityLevel: "strict" });
    for (const container of containers) {
      try {
        await window.mermaid.run({ nodes: [container] });
      } catch (error) {
        const entry = markError(container, "__MDPOINTER_DIAGRAM_ENGINE__", errorText(error), errors);
        container.textContent = entry;
      }
    }
  };

  window.__mdpointerCollectDiagrams = () => Array.from(document.querySelectorAll("pre.diagram")).map((container, index) => ({
    index,
    line: container.getAttribute("data-line") || "0",
    source: container.getAttribute("data-source") || "",
    markup: container.hasAttribute("data-render-error") ? "" : container.innerHTML,
  }));

  window.__mdpointerApplyDiagram = (index, markup) => {
    const container = document.querySelectorAll("pre.diagram")[index];
    if (!container || !markup) {
      return false;
    }
    container.innerHTML = markup;
    return true;
  };

  document.addEventListener("DOMContentLoaded", async () => {
    const errors = [];
    try {
      renderMath(errors);
    } catch (error) {
      console.error("mdpointer KaTeX render failed:", error);
    }
    try {
      await renderDiagrams(errors);
    } catch (error) {
      console.error("mdpointer Mermaid render failed:", error);
    }
    window.__mdpointerRenderErrors = errors;
    post("render-complete:" + JSON.stringify(errors));
  });
})();
"""
