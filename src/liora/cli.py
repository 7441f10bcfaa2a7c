#! /usr/bin/env python

# Command line front end for the liora generation tools.
#
# Usage examples:
#   liora resolve kling -t video
#   liora resolve flux --with-image
#   liora generate -m "nano banana" -p "a cat in a tea pot"
#   liora generate -m kling -t video -p "the cat wakes up" --image-url https://host/cat.jpg
#   liora generate -m veo3 -t video -f prompt.txt --claim 2 --dry-run
#   liora practices midjourney -t image
#   liora tools
#   liora agent --kind recipe --coral-tool coral_wait_for_mentions --coral-tool coral_send_message
#
# Reads FAL_KEY, NOTION_*, CORAL_* and LIORA_OFFLINE from the environment (see .env).

from __future__ import annotations

import itertools
import json
import logging
import mimetypes
import webbrowser
from dataclasses import replace
from pathlib import Path
from pprint import pformat
from typing import Iterable, List, Optional, Tuple
from urllib.parse import unquote, urlsplit

import click
import requests

from .best_practices import OUTPUT_TYPES as PRACTICE_OUTPUT_TYPES, best_practice_service_for
from .config import Settings
from .coral import prepare_agent
from .errors import LioraError
from .exif import tag_generated_image
from .prompts import AGENT_PROMPTS
from .registry import OUTPUT_TYPES
from .resolver import resolve_fal_endpoint
from .tools import default_tools

# ------------------------------ Utilities ------------------------------

CHUNK_SIZE = 1024 * 64  # 64 KiB

ASSET_TYPES = ("image/", "video/")


def _split_name_and_ext(filename: str) -> Tuple[str, str]:
    p = Path(filename)
    return p.stem, p.suffix  # suffix includes leading dot or empty string


def _unique_path(base: Path) -> Path:
    if not base.exists():
        return base
    stem, suffix = base.stem, base.suffix
    for i in itertools.count(1):
        candidate = base.with_name(f"{stem}-{i}{suffix}")
        if not candidate.exists():
            return candidate


def _is_asset_type(content_type: Optional[str]) -> bool:
    return bool(content_type) and content_type.lower().startswith(ASSET_TYPES)


def _ext_from_content_type(content_type: Optional[str]) -> str:
    if not _is_asset_type(content_type):
        return ""
    return mimetypes.guess_extension(content_type.split(";")[0].strip()) or ""


def save_all_assets(
        urls: Iterable[str],
        name_prefix: Optional[str] = None,
        savedir: Path | str = "assets",
        open_files: bool = False,
        endpoint: Optional[str] = None,
        prompt: Optional[str] = None,
        timeout: Tuple[float, float] = (5.0, 60.0),  # (connect, read)
) -> List[Path]:
    """
    Download generated images and videos from URLs into savedir.

    If name_prefix is provided, filenames become:
      "<name_prefix>-<N>-<original_stem><ext>" where N starts at 1.

    Saved images are tagged with the endpoint and prompt (when given).
    Returns a list of saved Paths.

    Security notes:
    - Validates Content-Type is image/* or video/* before saving.
    - Never executes files; optional open uses the default system handler.
    - Strips any path segments from URL so filenames cannot escape savedir.
    """
    savedir = Path(savedir)
    savedir.mkdir(parents=True, exist_ok=True)

    saved_paths: List[Path] = []

    with requests.Session() as session:
        session.headers.update({"User-Agent": "liora-downloader/1.0"})
        for idx, url in enumerate(urls, start=1):
            try:
                parsed = urlsplit(url)
                raw_name = Path(unquote(parsed.path)).name or "download"
                stem, suffix = _split_name_and_ext(raw_name)

                resp = session.get(url, stream=True, timeout=timeout)
                resp.raise_for_status()

                ctype = resp.headers.get("Content-Type", "")
                if not _is_asset_type(ctype):
                    print(f"Skip non-media content for {url} (Content-Type={ctype or 'unknown'})")
                    resp.close()
                    continue

                if not suffix:
                    suffix = _ext_from_content_type(ctype) or ".bin"

                if name_prefix:
                    out_name = f"{name_prefix}-{idx}-{stem}{suffix}"
                else:
                    out_name = f"{stem}{suffix}"

                filename = _unique_path(savedir / out_name)

                with open(filename, "wb") as f:
                    for chunk in resp.iter_content(chunk_size=CHUNK_SIZE):
                        if chunk:  # filter out keep-alive chunks
                            f.write(chunk)

                if endpoint and ctype.lower().startswith("image/"):
                    if not tag_generated_image(filename, endpoint, prompt or "", quiet=True):
                        print(f"Warning: failed to set EXIF for {filename}")

                saved_paths.append(filename)
                print(f"Saved {filename}")

                if open_files:
                    webbrowser.open(filename.resolve().as_uri())

            except requests.exceptions.RequestException as e:
                print(f"Failed to download {url}: {e}")
            except OSError as e:
                print(f"Filesystem error for {url}: {e}")

    return saved_paths


def _urls_from(value) -> List[str]:
    items = value if isinstance(value, list) else [value]
    urls = [item.get("url") if isinstance(item, dict) else item for item in items]
    return [u for u in urls if isinstance(u, str) and u]


def extract_urls(result) -> List[str]:
    """Extract asset URLs from the result shapes fal.ai endpoints return."""
    if not isinstance(result, dict):
        return []
    for key in ("images", "output", "image", "videos", "video", "mockedAssets"):
        if key in result and result[key]:
            return _urls_from(result[key])
    return []


def read_prompt(prompt: Optional[str], promptfile: Optional[str]) -> Tuple[str, Optional[str]]:
    """Return the prompt text and, for prompt files, the file stem as a name prefix."""
    if promptfile:
        candidate = str(promptfile)
        if not candidate.endswith(".txt"):
            candidate = f"{candidate}.txt"
        prompt_path = Path(candidate)
        if not prompt_path.is_absolute() and not prompt_path.exists():
            prompt_path = Path.cwd() / "prompts" / prompt_path.name
        if not prompt_path.exists():
            raise click.UsageError(f"Prompt file not found: {prompt_path}")
        return prompt_path.read_text(encoding="utf-8").strip(), prompt_path.stem
    if not prompt:
        raise click.UsageError("Either --prompt or --promptfile must be provided.")
    return prompt, None


# ------------------------------ CLI ------------------------------

@click.group()
@click.option("-v", "--verbose", count=True, help="Log more (-v info, -vv debug).")
@click.pass_context
def main(ctx, verbose):
    """Generate images and videos on fal.ai from plain model names."""
    level = logging.WARNING - 10 * min(verbose, 2)
    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    ctx.ensure_object(dict)
    try:
        ctx.obj["settings"] = Settings.from_env()
    except LioraError as e:
        raise click.ClickException(str(e))


@main.command()
@click.argument("model")
@click.option("--output-type", "-t", type=click.Choice(OUTPUT_TYPES), default="image", show_default=True)
@click.option("--with-image", is_flag=True, default=False, help="Resolve for a request that carries a source image.")
def resolve(model, output_type, with_image):
    """Print the fal.ai endpoint MODEL resolves to."""
    click.echo(resolve_fal_endpoint(model, output_type, with_image))


@main.command()
@click.option("--model", "-m", required=True, help='Generic model name, e.g. "nano banana" or "kling".')
@click.option("--prompt", "-p", type=str, help="Prompt for generation.")
@click.option("--promptfile", "-f", type=str, help="File containing the prompt (.txt implied; also looked up under prompts/).")
@click.option("--output-type", "-t", type=click.Choice(OUTPUT_TYPES), default="image", show_default=True)
@click.option("--image-url", type=str, default=None, help="Source image for image-to-image or image-to-video.")
@click.option("--name", type=str, help="Base name for saved assets.")
@click.option("--savedir", type=click.Path(file_okay=False), default="assets", show_default=True)
@click.option("--claim", "claim_amount", type=float, default=None, help="Claim this many coral from the session budget after generating.")
@click.option("--open/--no-open", "open_files", default=False, show_default=True, help="Open saved assets.")
@click.option("--dry-run", "-n", is_flag=True, default=False, help="Do not send; use offline mocks.")
@click.pass_obj
def generate(obj, model, prompt, promptfile, output_type, image_url, name, savedir, claim_amount, open_files, dry_run):
    """Generate an image or video with the model best matching MODEL."""
    prompt, prompt_prefix = read_prompt(prompt, promptfile)

    settings = obj["settings"]
    if dry_run:
        settings = replace(settings, offline=True)

    payload = {"model": model, "prompt": prompt, "outputType": output_type}
    if image_url:
        payload["imageUrl"] = image_url

    print("*** REQUEST:")
    print(pformat(payload))
    if dry_run:
        print("*** NOT SENT (dry-run)")

    tool = default_tools(settings, claim_amount)["genai-execute"]
    output = tool.execute(payload)
    if "error" in output:
        raise click.ClickException(output["error"])

    click.echo(f"Resolved {model!r} to {output['resolvedModel']} (request {output['requestId']})")
    if "payment" in output:
        click.echo(f"Remaining budget: {output['payment']['remainingBudget']}")
    if "paymentError" in output:
        click.echo(f"Warning: {output['paymentError']}", err=True)

    if dry_run:
        return

    urls = extract_urls(output["data"])
    if urls:
        save_all_assets(urls, name_prefix=prompt_prefix or name, savedir=savedir, open_files=open_files,
                        endpoint=output["resolvedModel"], prompt=prompt)
    else:
        print("No asset URLs returned.")


@main.command()
@click.argument("query", required=False, default="")
@click.option("--output-type", "-t", type=click.Choice(PRACTICE_OUTPUT_TYPES), default=None)
@click.pass_obj
def practices(obj, query, output_type):
    """List best practices (optionally matching QUERY)."""
    service = best_practice_service_for(obj["settings"])
    try:
        found = service.search(query, output_type)
    except LioraError as e:
        raise click.ClickException(str(e))

    if not found:
        click.echo("No best practices found.")
    for p in found:
        models = ", ".join(p.relevant_models) or "any model"
        kinds = ", ".join(p.output_type) or "any output"
        click.echo(f"- [{models} | {kinds}] {p.insight}")


@main.command()
@click.option("--kind", type=click.Choice(sorted(AGENT_PROMPTS)), default="generator", show_default=True)
@click.option("--coral-tool", "coral_tools", multiple=True, help="Coral tool name offered by the server (repeatable).")
@click.option("--claim", "claim_amount", type=float, default=None, help="Coral to claim after each generation.")
@click.pass_obj
def agent(obj, kind, coral_tools, claim_amount):
    """Print the Coral connection URL and system instructions for a hosted agent."""
    try:
        setup = prepare_agent(obj["settings"], coral_tools, kind, claim_amount=claim_amount)
    except LioraError as e:
        raise click.ClickException(str(e))
    click.echo(f"*** CORAL URL: {setup.url}")
    click.echo(f"*** TOOLS: {', '.join(setup.tools)}")
    click.echo("*** INSTRUCTIONS:")
    click.echo(setup.instructions)


@main.command()
@click.pass_obj
def tools(obj):
    """Print the function-calling schemas of the agent tools."""
    schemas = [tool.function_schema() for tool in default_tools(obj["settings"]).values()]
    click.echo(json.dumps(schemas, indent=2))


if __name__ == "__main__":
    main()
