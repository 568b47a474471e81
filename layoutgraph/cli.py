#!/usr/bin/env python3
"""
Command-line interface for the LayoutGraph renderer
"""

import os
import sys

FFMPEG_ENV_VAR = 'LAYOUTGRAPH_FFMPEG'


def print_usage():
    print("LayoutGraph - JSON Layout to ffmpeg Renderer")
    print("Usage: layoutgraph [--preview] [--dry-run] <layout.json> <output.mp4> [path/to/ffmpeg]")
    print("\nArguments:")
    print("  layout.json     Path to the layout document")
    print("  output.mp4      Path for the output video file (can be .mp4, .mov, or .webm)")
    print(f"  path/to/ffmpeg  Optional path to the ffmpeg executable (default: ${FFMPEG_ENV_VAR} or 'ffmpeg')")
    print("\nOptions:")
    print("  --preview       Use fast/low quality render settings for quick previews")
    print("  --dry-run       Print the filter graph and ffmpeg command without rendering")


def main(argv=None):
    """Main CLI entry point"""
    args = []
    preview_mode = False
    dry_run = False

    for arg in (sys.argv[1:] if argv is None else argv):
        if arg == "--preview":
            preview_mode = True
        elif arg == "--dry-run":
            dry_run = True
        elif arg in ["--help", "-h"]:
            print_usage()
            sys.exit(0)
        else:
            args.append(arg)

    if len(args) < 2 or len(args) > 3:
        print_usage()
        sys.exit(1)

    # Import is done here to ensure fast startup for help message
    from layoutgraph.errors import LayoutError
    from layoutgraph.renderer import LayoutRenderer

    document_path = args[0]
    output_path = args[1]
    ffmpeg_exec = args[2] if len(args) == 3 else os.environ.get(FFMPEG_ENV_VAR, 'ffmpeg')

    try:
        renderer = LayoutRenderer(document_path, output_path, ffmpeg_executable=ffmpeg_exec,
                                  preview_mode=preview_mode)
        if dry_run:
            renderer.dry_run()
        else:
            renderer.render()
    except LayoutError as e:
        print(f"\nERROR: {e}", file=sys.stderr)
        stderr = getattr(e, 'stderr', None)
        if stderr:
            print("\n--- ffmpeg STDERR (tail) ---\n" + stderr, file=sys.stderr)
        sys.exit(1)
    except KeyboardInterrupt:
        print("\nRendering cancelled by user", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
