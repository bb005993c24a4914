from __future__ import annotations

import json
import logging
import time
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import typer
import yaml

from cardstamp.assets import AssetAcquirer
from cardstamp.config import (
    brand_font_settings,
    get_config_path,
    load_config,
    render_options_from_config,
    resolve_app_path,
    write_default_config,
)
from cardstamp.errors import InvalidTemplateShape, RenderError
from cardstamp.models import RenderOptions, TemplateDefinition
from cardstamp.placeholders import find_placeholders, resolve
from cardstamp.render.compositor import render as render_png
from cardstamp.render.encoder import PNG_SIGNATURE, png_data_url, publish_png, write_png
from cardstamp.render.typography import FontRegistry, font_string
from cardstamp.template_loader import (
    TemplateStore,
    list_builtin_templates,
    load_payload_file,
    load_template,
    normalize_template_dict,
)

app = typer.Typer(add_completion=False, no_args_is_help=True, help="Template-driven PNG card renderer.")
template_app = typer.Typer(no_args_is_help=True, help="Show or replace the stored template.")
app.add_typer(template_app, name="template")
LOGGER = logging.getLogger("cardstamp")


@dataclass(slots=True)
class _Runtime:
    cfg: dict[str, Any]
    options: RenderOptions
    fonts: FontRegistry
    acquirer: AssetAcquirer
    brand_font_ok: bool


def _setup_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(message)s",
        datefmt="%H:%M:%S",
    )


def _fail(message: str) -> typer.Exit:
    typer.secho(message, err=True, fg=typer.colors.RED)
    return typer.Exit(1)


def _build_runtime(config_path: Path | None, log_level: str | None) -> _Runtime:
    cfg = load_config(config_path)
    _setup_logging(log_level or str(cfg.get("log_level", "info")))
    options = render_options_from_config(cfg)
    fonts = FontRegistry()
    font_path, family = brand_font_settings(cfg)
    brand_font_ok = fonts.try_register(font_path, family)
    acquirer = AssetAcquirer(options.app_root, timeout=options.fetch_timeout)
    return _Runtime(cfg=cfg, options=options, fonts=fonts, acquirer=acquirer, brand_font_ok=brand_font_ok)


def _template_store(runtime: _Runtime) -> TemplateStore:
    return TemplateStore(resolve_app_path(runtime.cfg, "template_path"))


def _parse_set_values(values: list[str] | None) -> dict[str, str]:
    parsed: dict[str, str] = {}
    for item in values or []:
        key, sep, value = item.partition("=")
        key = key.strip()
        if not sep or not key:
            raise ValueError(f"expected key=value, got: {item!r}")
        parsed[key] = value
    return parsed


def _load_data(data_file: Path | None, set_values: list[str] | None) -> dict[str, Any]:
    data: dict[str, Any] = {}
    if data_file is not None:
        loaded = json.loads(data_file.read_text(encoding="utf-8"))
        if not isinstance(loaded, dict):
            raise ValueError(f"data file must hold a JSON object: {data_file}")
        data.update(loaded)
    data.update(_parse_set_values(set_values))
    return data


def _deliver(
    png: bytes,
    runtime: _Runtime,
    *,
    out: Path | None,
    data_url: bool,
    prefix: str,
) -> None:
    if out is not None:
        write_png(png, out)
        typer.echo(str(out))
    elif data_url:
        typer.echo(png_data_url(png))
    else:
        public_dir = resolve_app_path(runtime.cfg, "public_dir")
        _path, url = publish_png(png, public_dir, str(runtime.cfg.get("public_base_url") or ""), prefix=prefix)
        typer.echo(url)


def _render_and_deliver(
    template: TemplateDefinition,
    data: dict[str, Any],
    runtime: _Runtime,
    *,
    out: Path | None,
    data_url: bool,
    prefix: str,
) -> None:
    request_id = uuid.uuid4().hex[:12]
    t0 = time.perf_counter()
    try:
        png = render_png(
            template,
            data,
            acquirer=runtime.acquirer,
            fonts=runtime.fonts,
            options=runtime.options,
            request_id=request_id,
        )
    except RenderError as exc:
        LOGGER.error("[%s] render failed: %s", request_id, exc)
        raise _fail(f"Image generation failed: {exc}")
    LOGGER.info("[%s] done template=%s bytes=%d (%.2fs)", request_id, template.name, len(png), time.perf_counter() - t0)
    _deliver(png, runtime, out=out, data_url=data_url, prefix=prefix)


@app.command()
def render(
    data_file: Path | None = typer.Option(None, "--data", exists=True, dir_okay=False, resolve_path=True, help="JSON object with placeholder values."),
    set_values: list[str] | None = typer.Option(None, "--set", help="Placeholder value as key=value (repeatable, overrides --data)."),
    template: str | None = typer.Option(None, "--template", help="Template file or built-in name (default: the stored template)."),
    out: Path | None = typer.Option(None, "--out", help="Write the PNG to this file."),
    data_url: bool = typer.Option(False, "--data-url", help="Print a base64 data URL instead of writing a file."),
    config: Path | None = typer.Option(None, "--config", help="Config file (default: ./cardstamp.yaml)."),
    log_level: str | None = typer.Option(None, "--log-level"),
) -> None:
    """Render the stored template (or --template) with request data into a PNG.

    Without --out or --data-url the image is published to the public directory
    and its URL is printed.
    """
    runtime = _build_runtime(config, log_level)
    try:
        data = _load_data(data_file, set_values)
    except ValueError as exc:
        raise _fail(str(exc))

    try:
        if template:
            template_def = load_template(template)
        else:
            template_def = _template_store(runtime).get()
    except (OSError, ValueError, yaml.YAMLError, RenderError) as exc:
        raise _fail(f"Template load failed: {exc}")

    _render_and_deliver(template_def, data, runtime, out=out, data_url=data_url, prefix="")


@app.command()
def preview(
    request_file: Path = typer.Argument(..., exists=True, dir_okay=False, resolve_path=True, help="JSON file holding both 'template' and 'data'."),
    out: Path | None = typer.Option(None, "--out", help="Write the PNG to this file."),
    data_url: bool = typer.Option(False, "--data-url", help="Print a base64 data URL instead of writing a file."),
    config: Path | None = typer.Option(None, "--config"),
    log_level: str | None = typer.Option(None, "--log-level"),
) -> None:
    """Render an inline template without touching the stored one."""
    runtime = _build_runtime(config, log_level)
    try:
        payload = json.loads(request_file.read_text(encoding="utf-8"))
    except ValueError as exc:
        raise _fail(f"Invalid preview request: {exc}")
    template = payload.get("template") if isinstance(payload, dict) else None
    data = payload.get("data") if isinstance(payload, dict) else None
    if not isinstance(template, dict) or not isinstance(data, dict):
        raise _fail("Both template and data are required")

    template_def = normalize_template_dict(template, name="preview")
    _render_and_deliver(template_def, data, runtime, out=out, data_url=data_url, prefix="preview-")


@template_app.command("show")
def template_show(
    config: Path | None = typer.Option(None, "--config"),
) -> None:
    runtime = _build_runtime(config, "error")
    try:
        raw = _template_store(runtime).get_raw()
    except RenderError as exc:
        raise _fail(str(exc))
    typer.echo(json.dumps(raw, ensure_ascii=False, indent=2))


@template_app.command("set")
def template_set(
    file: Path = typer.Argument(..., exists=True, dir_okay=False, resolve_path=True, help="JSON or YAML template file."),
    config: Path | None = typer.Option(None, "--config"),
) -> None:
    """Validate and replace the stored template."""
    runtime = _build_runtime(config, "warning")
    try:
        payload = load_payload_file(file)
        snapshot = _template_store(runtime).put(payload)
    except InvalidTemplateShape as exc:
        raise _fail(str(exc))
    except (OSError, ValueError, yaml.YAMLError) as exc:
        raise _fail(f"Failed to update template: {exc}")
    typer.echo(f"Template updated successfully ({len(snapshot.elements)} elements)")


@app.command("placeholders")
def placeholders(
    texts: list[str] = typer.Argument(..., help="Strings containing {{key}} tokens."),
    data_file: Path | None = typer.Option(None, "--data", exists=True, dir_okay=False, resolve_path=True),
    set_values: list[str] | None = typer.Option(None, "--set", help="Placeholder value as key=value."),
) -> None:
    """Show how placeholder strings resolve against request data."""
    try:
        data = _load_data(data_file, set_values)
    except ValueError as exc:
        raise _fail(str(exc))
    results = []
    for text in texts:
        keys = find_placeholders(text)
        results.append(
            {
                "template": text,
                "keys": keys,
                "missing": [key for key in keys if data.get(key) is None],
                "resolved": resolve(text, data),
            }
        )
    payload = {
        "received_data": data,
        "results": results,
        "summary": {
            "total": len(results),
            "complete": sum(1 for item in results if not item["missing"]),
        },
    }
    typer.echo(json.dumps(payload, ensure_ascii=False, indent=2))


def _file_report(path: Path) -> dict[str, Any]:
    if not path.is_file():
        return {"exists": False, "path": str(path)}
    return {"exists": True, "path": str(path), "size": path.stat().st_size}


@app.command()
def doctor(
    config: Path | None = typer.Option(None, "--config"),
) -> None:
    """Report asset, font, template and canvas status as JSON."""
    runtime = _build_runtime(config, "error")
    assets_dir = resolve_app_path(runtime.cfg, "assets_dir")
    font_path, family = brand_font_settings(runtime.cfg)
    fallback_background = resolve_app_path(runtime.cfg, "fallback_background")

    store = _template_store(runtime)
    try:
        template_report: dict[str, Any] = {"path": str(store.path), "loaded": True, "elements": len(store.get().elements)}
    except RenderError as exc:
        template_report = {"path": str(store.path), "loaded": False, "error": str(exc)}

    smoke = TemplateDefinition(name="doctor")
    smoke_options = RenderOptions(
        app_root=runtime.options.app_root,
        fallback_background=runtime.options.fallback_background,
        default_size=(100, 100),
    )
    try:
        png = render_png(smoke, {}, acquirer=runtime.acquirer, fonts=runtime.fonts, options=smoke_options)
        canvas_report: dict[str, Any] = {"status": "working", "valid_png": png.startswith(PNG_SIGNATURE)}
    except RenderError as exc:
        canvas_report = {"status": "failed", "error": str(exc)}

    payload = {
        "app_root": str(runtime.options.app_root),
        "config_path": str(config or get_config_path()),
        "assets_dir": {
            "exists": assets_dir.is_dir(),
            "path": str(assets_dir),
            "files": sorted(p.name for p in assets_dir.iterdir()) if assets_dir.is_dir() else [],
        },
        "font": {
            **_file_report(font_path),
            "family": family,
            "registered": runtime.brand_font_ok,
            "font_string": font_string(60, family),
        },
        "background": _file_report(fallback_background),
        "template": template_report,
        "builtin_templates": list_builtin_templates(),
        "canvas": canvas_report,
    }
    typer.echo(json.dumps(payload, ensure_ascii=False, indent=2))


@app.command("init-config")
def init_config(
    path: Path | None = typer.Option(None, "--path", help="Where to write the config (default: ./cardstamp.yaml)."),
    force: bool = typer.Option(False, "--force", help="Overwrite existing config file."),
) -> None:
    written = write_default_config(path, force=force)
    typer.echo(f"Config initialized: {written}")


def main() -> None:
    app()


if __name__ == "__main__":
    main()
