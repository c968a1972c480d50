"""JavaScript installed into every sandbox context before the snippet.

The engine's bare context only has the ECMAScript intrinsics (Object,
Array, String, Number, Boolean, Date, Math, JSON, Promise, Error, Map,
Set, RegExp, ...). The prelude adds the rest of the capability set:
``console``, timers, ``URL``/``URLSearchParams``, ``Headers``,
``Request``/``Response`` and, when enabled, ``fetch``.

Nothing inside the context calls back into Python. ``console`` lines and
``fetch`` requests are queued in JavaScript; the host drains the queues
between job steps (``__drainConsole()``, ``__drainFetch()``) and settles
each request with ``__settleFetch(id, reply)``. Queues exchange JSON text.
"""

from __future__ import annotations

import json
from collections.abc import Mapping, Sequence
from typing import Any

DRAIN_CONSOLE = "__drainConsole()"
DRAIN_FETCH = "__drainFetch()"
NEXT_TIMER_DELAY = "__nextTimerDelay()"
FIRE_NEXT_TIMER = "__fireNextTimer()"
OUTCOME = "globalThis.__outcome"

_PRELUDE = r"""
(function (global, options) {
  const show = (value) => {
    if (typeof value === "string") return value;
    try {
      const text = JSON.stringify(value);
      return text === undefined ? String(value) : text;
    } catch (e) {
      return String(value);
    }
  };

  const consoleLines = [];
  const emit = (level) => (...args) => {
    consoleLines.push([level, args.map(show).join(" ")]);
  };
  global.console = {
    log: emit("info"),
    info: emit("info"),
    debug: emit("debug"),
    warn: emit("warning"),
    error: emit("error"),
  };
  global.__drainConsole = () => JSON.stringify(consoleLines.splice(0));

  let timerSeq = 0;
  const timers = new Map();
  const addTimer = (fn, delay, args, repeat) => {
    if (typeof fn !== "function") {
      throw new TypeError("Timer callback must be a function");
    }
    const id = ++timerSeq;
    const ms = Math.max(0, Number(delay) || 0);
    timers.set(id, { due: Date.now() + ms, ms, fn, args, repeat });
    return id;
  };
  const earliest = () => {
    let best = null;
    for (const entry of timers) {
      if (best === null || entry[1].due < best[1].due) best = entry;
    }
    return best;
  };
  global.setTimeout = (fn, delay, ...args) => addTimer(fn, delay, args, false);
  global.setInterval = (fn, delay, ...args) => addTimer(fn, delay, args, true);
  global.clearTimeout = (id) => { timers.delete(id); };
  global.clearInterval = global.clearTimeout;
  global.__nextTimerDelay = () => {
    const next = earliest();
    return next === null ? -1 : Math.max(0, next[1].due - Date.now());
  };
  global.__fireNextTimer = () => {
    const next = earliest();
    if (next === null) return;
    const [id, timer] = next;
    if (timer.repeat) {
      timer.due = Date.now() + Math.max(timer.ms, 1);
    } else {
      timers.delete(id);
    }
    timer.fn(...timer.args);
  };

  const formEncode = (text) => encodeURIComponent(text)
    .replace(/[!'()~]/g, (c) => "%" + c.charCodeAt(0).toString(16).toUpperCase())
    .replace(/%20/g, "+");
  const formDecode = (text) => {
    const spaced = text.replace(/\+/g, " ");
    try {
      return decodeURIComponent(spaced);
    } catch (e) {
      return spaced;
    }
  };

  class URLSearchParams {
    constructor(init) {
      this._list = [];
      this._url = null;
      if (init == null) return;
      if (init instanceof URLSearchParams) {
        this._list = init._list.map(([key, value]) => [key, value]);
      } else if (typeof init === "object") {
        const entries = Array.isArray(init) ? init : Object.entries(init);
        for (const [key, value] of entries) this._list.push([String(key), String(value)]);
      } else {
        this._list = URLSearchParams._parse(String(init));
      }
    }
    static _parse(text) {
      const list = [];
      const query = text.charAt(0) === "?" ? text.slice(1) : text;
      for (const part of query.split("&")) {
        if (!part) continue;
        const eq = part.indexOf("=");
        const key = eq < 0 ? part : part.slice(0, eq);
        const value = eq < 0 ? "" : part.slice(eq + 1);
        list.push([formDecode(key), formDecode(value)]);
      }
      return list;
    }
    _changed() {
      if (this._url) this._url._search = this._list.length ? "?" + this.toString() : "";
    }
    get size() { return this._list.length; }
    append(key, value) {
      this._list.push([String(key), String(value)]);
      this._changed();
    }
    delete(key) {
      const name = String(key);
      this._list = this._list.filter((entry) => entry[0] !== name);
      this._changed();
    }
    get(key) {
      const entry = this._list.find((e) => e[0] === String(key));
      return entry ? entry[1] : null;
    }
    getAll(key) {
      return this._list.filter((e) => e[0] === String(key)).map((e) => e[1]);
    }
    has(key) { return this._list.some((e) => e[0] === String(key)); }
    set(key, value) {
      const name = String(key);
      const index = this._list.findIndex((e) => e[0] === name);
      if (index < 0) {
        this._list.push([name, String(value)]);
      } else {
        this._list[index] = [name, String(value)];
        this._list = this._list.filter((e, i) => i <= index || e[0] !== name);
      }
      this._changed();
    }
    sort() {
      this._list.sort((a, b) => (a[0] < b[0] ? -1 : a[0] > b[0] ? 1 : 0));
      this._changed();
    }
    forEach(fn) { this._list.forEach(([key, value]) => fn(value, key, this)); }
    entries() { return this._list.map(([key, value]) => [key, value])[Symbol.iterator](); }
    keys() { return this._list.map((e) => e[0])[Symbol.iterator](); }
    values() { return this._list.map((e) => e[1])[Symbol.iterator](); }
    [Symbol.iterator]() { return this.entries(); }
    toString() {
      return this._list.map(([key, value]) => formEncode(key) + "=" + formEncode(value)).join("&");
    }
  }

  const URL_PATTERN = new RegExp(
    "^([A-Za-z][A-Za-z0-9+.-]*):\\/\\/" +
    "(?:([^:@\\/?#]*)(?::([^@\\/?#]*))?@)?" +
    "(\\[[^\\]]*\\]|[^:\\/?#]*)(?::(\\d*))?" +
    "([^?#]*)(\\?[^#]*)?(#.*)?$"
  );
  const DEFAULT_PORTS = { "http:": "80", "https:": "443", "ws:": "80", "wss:": "443" };
  const removeDotSegments = (path) => {
    const parts = path.split("/");
    const out = [];
    parts.forEach((segment, i) => {
      const last = i === parts.length - 1;
      if (segment === "..") {
        if (out.length > 1) out.pop();
        if (last) out.push("");
      } else if (segment === ".") {
        if (last) out.push("");
      } else {
        out.push(segment);
      }
    });
    const joined = out.join("/");
    return joined.charAt(0) === "/" ? joined : "/" + joined;
  };

  class URL {
    constructor(input, base) {
      const text = String(input).trim();
      const match = URL_PATTERN.exec(text);
      if (match) {
        this._assign(match);
        return;
      }
      if (base === undefined) throw new TypeError("Invalid URL: " + text);
      const parent = base instanceof URL ? base : new URL(base);
      const authority = parent.protocol + "//" + parent._userinfo() + parent.host;
      let absolute;
      if (text.startsWith("//")) {
        absolute = parent.protocol + text;
      } else if (text.charAt(0) === "/") {
        absolute = authority + text;
      } else if (text === "") {
        absolute = authority + parent.pathname + parent.search;
      } else if (text.charAt(0) === "?") {
        absolute = authority + parent.pathname + text;
      } else if (text.charAt(0) === "#") {
        absolute = authority + parent.pathname + parent.search + text;
      } else {
        const dir = parent.pathname.slice(0, parent.pathname.lastIndexOf("/") + 1);
        absolute = authority + dir + text;
      }
      const resolved = URL_PATTERN.exec(absolute);
      if (!resolved) throw new TypeError("Invalid URL: " + text);
      this._assign(resolved);
    }
    _assign(match) {
      this.protocol = match[1].toLowerCase() + ":";
      this.username = match[2] || "";
      this.password = match[3] || "";
      this.hostname = match[4].toLowerCase();
      const port = match[5] || "";
      this.port = DEFAULT_PORTS[this.protocol] === port ? "" : port;
      this.pathname = removeDotSegments(match[6] || "/");
      this._search = match[7] && match[7].length > 1 ? match[7] : "";
      this.hash = match[8] && match[8].length > 1 ? match[8] : "";
      this._params = new URLSearchParams(this._search);
      this._params._url = this;
    }
    _userinfo() {
      if (!this.username && !this.password) return "";
      return this.username + (this.password ? ":" + this.password : "") + "@";
    }
    get host() { return this.port ? this.hostname + ":" + this.port : this.hostname; }
    get origin() { return this.protocol + "//" + this.host; }
    get search() { return this._search; }
    set search(value) {
      const text = String(value);
      this._params._list = URLSearchParams._parse(text);
      this._search = this._params._list.length ? "?" + this._params.toString() : "";
    }
    get searchParams() { return this._params; }
    get href() {
      return this.protocol + "//" + this._userinfo() + this.host +
        this.pathname + this._search + this.hash;
    }
    toString() { return this.href; }
    toJSON() { return this.href; }
  }

  class Headers {
    constructor(init) {
      this._map = new Map();
      if (init) {
        const entries = init instanceof Headers
          ? init.entries()
          : Array.isArray(init) ? init : Object.entries(init);
        for (const [key, value] of entries) this.append(key, value);
      }
    }
    get(key) {
      const value = this._map.get(String(key).toLowerCase());
      return value === undefined ? null : value;
    }
    set(key, value) { this._map.set(String(key).toLowerCase(), String(value)); }
    append(key, value) {
      const name = String(key).toLowerCase();
      const current = this._map.get(name);
      this._map.set(name, current === undefined ? String(value) : current + ", " + value);
    }
    has(key) { return this._map.has(String(key).toLowerCase()); }
    delete(key) { this._map.delete(String(key).toLowerCase()); }
    entries() { return this._map.entries(); }
    keys() { return this._map.keys(); }
    values() { return this._map.values(); }
    forEach(fn) { this._map.forEach((value, key) => fn(value, key, this)); }
    [Symbol.iterator]() { return this._map.entries(); }
    toJSON() { return Object.fromEntries(this._map); }
  }

  class Request {
    constructor(input, init) {
      init = init || {};
      const source = input instanceof Request ? input : null;
      this.url = source ? source.url : new URL(String(input)).href;
      this.method = String(init.method || (source ? source.method : "GET")).toUpperCase();
      this.headers = new Headers(init.headers || (source ? source.headers : undefined));
      if (init.body !== undefined) {
        if (init.body instanceof URLSearchParams && !this.headers.has("content-type")) {
          this.headers.set("content-type", "application/x-www-form-urlencoded;charset=UTF-8");
        }
        this._body = init.body === null ? null : String(init.body);
      } else {
        this._body = source ? source._body : null;
      }
      if (this._body !== null && (this.method === "GET" || this.method === "HEAD")) {
        throw new TypeError("Request with " + this.method + " method cannot have a body");
      }
      this.bodyUsed = false;
    }
    async text() {
      this.bodyUsed = true;
      return this._body === null ? "" : this._body;
    }
    async json() { return JSON.parse(await this.text()); }
    clone() { return new Request(this); }
  }

  class Response {
    constructor(body, init) {
      init = init || {};
      this._body = body == null ? "" : String(body);
      this.status = init.status === undefined ? 200 : init.status;
      this.statusText = init.statusText || "";
      this.headers = new Headers(init.headers);
      this.url = init.url || "";
      this.ok = this.status >= 200 && this.status < 300;
      this.bodyUsed = false;
    }
    async text() {
      this.bodyUsed = true;
      return this._body;
    }
    async json() { return JSON.parse(await this.text()); }
    clone() {
      return new Response(this._body, {
        status: this.status,
        statusText: this.statusText,
        headers: this.headers,
        url: this.url,
      });
    }
  }

  global.URL = URL;
  global.URLSearchParams = URLSearchParams;
  global.Headers = Headers;
  global.Request = Request;
  global.Response = Response;

  if (options.fetch) {
    let fetchSeq = 0;
    const outbox = [];
    const waiting = new Map();
    global.fetch = function fetch(input, init) {
      return new Promise((resolve, reject) => {
        const request = new Request(input, init);
        const id = ++fetchSeq;
        waiting.set(id, { resolve, reject });
        outbox.push({
          id,
          url: request.url,
          method: request.method,
          headers: request.headers.toJSON(),
          body: request._body,
        });
      });
    };
    global.__drainFetch = () => JSON.stringify(outbox.splice(0));
    global.__settleFetch = (id, replyText) => {
      const entry = waiting.get(id);
      if (entry === undefined) return;
      waiting.delete(id);
      const reply = JSON.parse(replyText);
      if (reply.error) {
        entry.reject(new TypeError(reply.error));
      } else {
        entry.resolve(new Response(reply.body, reply));
      }
    };
  }

  global.__encodeResult = (value) => {
    try {
      return JSON.stringify({ ok: true, value: value === undefined ? null : value });
    } catch (e) {
      return JSON.stringify({
        ok: false,
        name: "TypeError",
        message: "Result is not JSON-serializable: " + (e && e.message),
      });
    }
  };
  global.__encodeError = (error) => {
    let name = null;
    let message;
    if (error instanceof Error) {
      name = error.name;
      message = error.message;
    } else {
      message = show(error);
    }
    return JSON.stringify({ ok: false, name, message: String(message) });
  };
})
"""


def build_prelude(*, fetch: bool) -> str:
    """Prelude script; ``fetch`` is only defined when *fetch* is true."""
    options = json.dumps({"fetch": fetch})
    return f"{_PRELUDE.strip()}(globalThis, {options});\n"


def build_invocation(function_name: str, args: Sequence[Any]) -> str:
    """Script calling *function_name* with *args* and recording the outcome."""
    payload = json.dumps(json.dumps(list(args)))
    return (
        f"globalThis.__args = JSON.parse({payload});\n"
        f"(async () => {function_name}(...globalThis.__args))().then(\n"
        "  (value) => { globalThis.__outcome = __encodeResult(value); },\n"
        "  (error) => { globalThis.__outcome = __encodeError(error); }\n"
        ");\n"
    )


def build_settlement(request_id: int, reply: Mapping[str, Any]) -> str:
    """Script resolving or rejecting the pending ``fetch`` *request_id*."""
    return f"__settleFetch({int(request_id)}, {json.dumps(json.dumps(dict(reply)))});\n"
