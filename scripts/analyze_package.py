"""Render the spec for a package archive offline (no database, no GitHub).

Usage:
    python -m scripts.analyze_package <package.zip> [--solution NAME] [--version N]
Uses the built-in skill definitions; prints the markdown document to stdout
and the open question count to stderr.
"""

import argparse
import sys
from pathlib import Path

from flowspec.application.dtos.analysis import count_questions
from flowspec.application.dtos.skill_definition import SkillDefinitionRecord
from flowspec.application.dtos.workflow import SpecMetadata
from flowspec.application.services import analyze_package, parse_package, render_package_spec
from flowspec.application.use_cases.skills import SEED_SKILL_DEFINITIONS
from flowspec.domain.exceptions import MalformedPackageException


def _builtin_skills() -> list[SkillDefinitionRecord]:
    return [
        SkillDefinitionRecord(
            id=f"builtin-{i}",
            connector_id=seed.connector_id,
            action_name=seed.action_name,
            business_meaning=seed.business_meaning,
            failure_impact=seed.failure_impact,
        )
        for i, seed in enumerate(SEED_SKILL_DEFINITIONS, start=1)
    ]


def main() -> None:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("archive", type=Path)
    parser.add_argument("--solution", default=None, help="Solution name (default: package name)")
    parser.add_argument("--version", type=int, default=1)
    args = parser.parse_args()

    try:
        package = parse_package(args.archive.read_bytes())
    except (OSError, MalformedPackageException) as e:
        print(f"Cannot read package: {e}", file=sys.stderr)
        sys.exit(1)

    analyses = analyze_package(package, _builtin_skills())
    meta = SpecMetadata(
        solution_name=args.solution or package.name,
        package_name=package.name,
        version_number=args.version,
        created_at=None,
        package_created_at=package.manifest.created_time,
    )
    sys.stdout.write(render_package_spec(analyses, meta))
    print(f"{count_questions(analyses)} open question(s)", file=sys.stderr)


if __name__ == "__main__":
    main()
