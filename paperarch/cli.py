"""
PaperArch: turn a paper's methodology into a publication-style architecture diagram.

Usage:
    paperarch analyze --input paper.pdf --conference CVPR
    paperarch run --input method.txt --refine "make the encoder blue" --output-dir outputs
    paperarch interactive --input paper.pdf
"""

import argparse
import datetime
import json
import sys
import uuid
from pathlib import Path

from paperarch.errors import ConfigurationError, PaperArchError, ValidationError
from paperarch.gateway import Gateway, resolve_api_key
from paperarch.models import DEFAULT_CONFERENCE, Conference, Stage, load_document, save_image
from paperarch.workflow import Workbench


def _banner(*lines):
    print(f"\n{'='*60}")
    for line in lines:
        print(line)
    print(f"{'='*60}\n")


def _fail(message):
    print(f"Error: {message}", file=sys.stderr)
    sys.exit(1)


def _invoke(workbench, command, *args):
    """Run a blocking command; Ctrl-C cancels the in-flight request."""
    try:
        return command(*args)
    except KeyboardInterrupt:
        workbench.cancel()
        print("\n[Workbench] Request cancelled.")
        return workbench.state


def _require_success(state, what):
    if state.last_error:
        _fail(f"{what} failed: {state.last_error}")


def export_name(conference):
    return f"Schema_{conference.value}.png"


# ═══════════════════════════════════════════════════════════════════════════
# RUN DIRECTORY
# ═══════════════════════════════════════════════════════════════════════════


def new_run_dir(output_dir):
    ts = datetime.datetime.now().strftime("%Y%m%d_%H%M%S")
    run_dir = Path(output_dir) / f"run_{ts}_{uuid.uuid4().hex[:6]}"
    run_dir.mkdir(parents=True, exist_ok=True)
    return run_dir


def write_run(run_dir, state):
    """Save the analysis, every history image and the exported final image."""
    run_dir = Path(run_dir)
    if state.analysis is not None:
        with open(run_dir / "analysis.json", "w", encoding="utf-8") as f:
            json.dump(state.analysis.to_json_dict(), f, indent=2)

    records = []
    # history is newest first; number the files in creation order
    for step, item in enumerate(reversed(state.history)):
        file_name = f"step_{step}.png"
        save_image(item.image_url, run_dir / file_name)
        records.append({"prompt": item.prompt, "timestamp": item.timestamp, "file": file_name})
    with open(run_dir / "history.json", "w", encoding="utf-8") as f:
        json.dump(list(reversed(records)), f, indent=2)

    if state.current_image is None:
        return None
    return save_image(state.current_image, run_dir / export_name(state.conference))


# ═══════════════════════════════════════════════════════════════════════════
# COMMANDS
# ═══════════════════════════════════════════════════════════════════════════


def cmd_analyze(workbench, document, conference, output=None):
    state = _invoke(workbench, workbench.submit_document, document, conference)
    _require_success(state, "Analysis")
    text = json.dumps(state.analysis.to_json_dict(), indent=2, ensure_ascii=False)
    if output:
        Path(output).write_text(text + "\n", encoding="utf-8")
        print(f"Saved analysis to {output}")
    else:
        print(text)
    return state


def cmd_run(workbench, document, conference, refinements=(), output_dir="outputs"):
    """Analyze, generate, apply each refinement in order, then export the run."""
    run_dir = new_run_dir(output_dir)
    _banner(
        f"PaperArch: {document.describe()}",
        f"Venue: {conference.value}",
        f"Output: {run_dir}",
    )

    print("\n--- Stage 1: Understanding ---\n")
    state = _invoke(workbench, workbench.submit_document, document, conference)
    _require_success(state, "Analysis")
    print(f"    Layout: {state.analysis.layout_strategy}")
    print(f"    Components: {', '.join(state.analysis.key_components)}")

    print("\n--- Stage 2: Generation ---\n")
    state = _invoke(workbench, workbench.request_generation)
    if state.last_error:
        write_run(run_dir, state)
        _fail(f"Generation failed: {state.last_error}")

    if refinements:
        print(f"\n--- Stage 3: Refinement ({len(refinements)} edits) ---\n")
    for i, instruction in enumerate(refinements, 1):
        print(f"  Edit {i}/{len(refinements)}")
        state = _invoke(workbench, workbench.request_refinement, instruction)
        if state.last_error:
            write_run(run_dir, state)
            _fail(f"Refinement {i} failed: {state.last_error}")

    final_output = write_run(run_dir, state)
    _banner("Generation complete!", f"Final output: {final_output}")
    return final_output


INTERACTIVE_HELP = """\
Commands:
  status              show the current stage and image
  analyze             re-run the analysis of the input document
  generate            render the diagram from the blueprint
  refine <text>       edit the current diagram
  history             list the iterations, newest first
  select <n>          show iteration n again
  goto <stage>        setup | understanding | generation | refinement
  conference <name>   change the venue
  save <path>         export the current image
  reset               start over
  quit
"""


def _print_status(workbench):
    state = workbench.state
    reachable = [s.name.lower() for s in Stage if workbench.can_navigate(s)]
    print(f"Stage: {state.stage.name}  Venue: {state.conference.value}  "
          f"Iterations: {len(state.history)}  Reachable: {', '.join(reachable)}")
    if state.analysis is not None:
        print(f"Paper: {state.analysis.title} ({state.analysis.layout_strategy})")
    if state.last_error:
        print(f"Last error: {state.last_error}")


def cmd_interactive(workbench, document, conference, stdin=None):
    stdin = stdin or sys.stdin
    workbench.set_conference(conference)
    print(INTERACTIVE_HELP)

    while True:
        print("paperarch> ", end="", flush=True)
        line = stdin.readline()
        if not line:
            break
        command, _, arg = line.strip().partition(" ")
        arg = arg.strip()
        if not command:
            continue

        try:
            if command in ("quit", "exit"):
                break
            elif command == "help":
                print(INTERACTIVE_HELP)
                continue
            elif command == "status":
                pass
            elif command == "analyze":
                _invoke(workbench, workbench.submit_document, document)
            elif command == "generate":
                _invoke(workbench, workbench.request_generation)
            elif command == "refine":
                _invoke(workbench, workbench.request_refinement, arg or None)
            elif command == "history":
                for n, item in enumerate(workbench.state.history):
                    marker = "*" if item.image_url == workbench.state.current_image else " "
                    print(f" {marker} [{n}] {item.prompt}")
                continue
            elif command == "select":
                history = workbench.state.history
                try:
                    item = history[int(arg)]
                except (ValueError, IndexError):
                    print(f"Warning: no iteration '{arg}' (0-{len(history) - 1})")
                    continue
                workbench.select_history_entry(item.timestamp)
            elif command == "goto":
                workbench.navigate_to(arg)
            elif command == "conference":
                workbench.set_conference(arg)
            elif command == "save":
                if workbench.state.current_image is None:
                    print("Warning: nothing to save yet")
                    continue
                path = arg or export_name(workbench.state.conference)
                try:
                    print(f"Saved to {save_image(workbench.state.current_image, path)}")
                except (ValueError, OSError) as e:
                    print(f"Warning: could not save to {path}: {e}")
                continue
            elif command == "reset":
                workbench.reset()
            else:
                print(f"Unknown command '{command}'. Type 'help' for the list.")
                continue
        except ValidationError as e:
            print(f"Warning: {e}")
            continue
        _print_status(workbench)

    return workbench.state


# ═══════════════════════════════════════════════════════════════════════════
# CLI
# ═══════════════════════════════════════════════════════════════════════════


def build_parser():
    parser = argparse.ArgumentParser(
        prog="paperarch",
        description="PaperArch: paper-to-architecture-diagram workbench",
    )
    subparsers = parser.add_subparsers(dest="command", help="Workflow mode")

    venues = ", ".join(c.value for c in Conference)

    def add_common(sub):
        sub.add_argument("--input", required=True,
                         help="Paper to analyze (.txt/.md/.tex as text, anything else e.g. PDF as a document)")
        sub.add_argument("--conference", default=DEFAULT_CONFERENCE.value,
                         help=f"Target venue, one of: {venues} (default: {DEFAULT_CONFERENCE.value})")
        sub.add_argument("--timeout", type=float, default=None,
                         help="Seconds to wait for each backend request (default: no limit)")

    analyze_parser = subparsers.add_parser("analyze", help="Extract the visual schema only")
    add_common(analyze_parser)
    analyze_parser.add_argument("--output", default=None,
                                help="Write the analysis JSON here instead of stdout")

    run_parser = subparsers.add_parser("run", help="Analyze, generate and refine in one go")
    add_common(run_parser)
    run_parser.add_argument("--refine", action="append", default=[], metavar="TEXT",
                            help="Refinement instruction; repeat to apply several in order")
    run_parser.add_argument("--output-dir", default="outputs",
                            help="Base output directory (default: outputs)")

    interactive_parser = subparsers.add_parser("interactive", help="Drive the workbench step by step")
    add_common(interactive_parser)

    return parser


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        sys.exit(1)

    try:
        conference = Conference.parse(args.conference)
        document = load_document(args.input)
        gateway = Gateway(api_key=resolve_api_key())
    except (ValidationError, ConfigurationError) as e:
        _fail(str(e))

    workbench = Workbench(gateway, timeout=args.timeout)

    try:
        if args.command == "analyze":
            cmd_analyze(workbench, document, conference, output=args.output)
        elif args.command == "run":
            cmd_run(workbench, document, conference,
                    refinements=args.refine, output_dir=args.output_dir)
        elif args.command == "interactive":
            _invoke(workbench, workbench.submit_document, document, conference)
            _print_status(workbench)
            cmd_interactive(workbench, document, conference)
    except PaperArchError as e:
        _fail(str(e))


if __name__ == "__main__":
    main()
