"""The release steps, in pipeline order.

Each step is an action, a verification predicate and (for steps that mutate
anything) a dry-run projection. Actions receive the state as of the last
completed step and return the values to record; the pipeline persists them.
"""

from __future__ import annotations

import logging
from typing import cast

from rel.core.result import Err, Ok, Result
from rel.output.console import Style
from rel.platform.files import read_text_or_none, remove_file
from rel.release.bump import decide_bump
from rel.release.changeset import new_changeset_path, write_changeset
from rel.release.context import StepContext
from rel.release.dry_run import announce, placeholder, simulate
from rel.release.errors import ReleaseError, step_failed
from rel.release.preflight import PreflightChecker, print_checks
from rel.release.semver import ReleaseBump, parse_version, tag_for
from rel.release.state import ReleaseState
from rel.release.step import Step, StepCleared, StepDone, StepOutcome, never_verified

logger = logging.getLogger(__name__)

StepResult = Result[StepOutcome, ReleaseError]

RELEASE_MARKER = "RELEASE: "


def release_commit_message(version: str) -> str:
    return f"{RELEASE_MARKER}{tag_for(version)}"


def _require(value: str | None, what: str, *, from_step: str) -> Result[str, ReleaseError]:
    if value:
        return Ok(value)
    return Err(step_failed(f"no {what} recorded", hint=f"Run: rel --from {from_step}"))


# -- preflight ---------------------------------------------------------------


def _preflight(ctx: StepContext, state: ReleaseState) -> StepResult:
    del state
    results = PreflightChecker(ctx).check_all()
    print_checks(ctx.console, results)

    errors = [r for r in results if r.is_error]
    if errors:
        names = ", ".join(r.name for r in errors)
        return Err(
            ReleaseError(
                kind="preflight_failed",
                message=f"{len(errors)} preflight check(s) failed: {names}",
                hint="Fix the errors above, then run rel again.",
            )
        )
    return Ok(StepDone())


# -- init --------------------------------------------------------------------


def _init(ctx: StepContext, state: ReleaseState) -> StepResult:
    del state
    head = ctx.vcs.head_sha()
    if isinstance(head, Err):
        return head
    ctx.console.info(f"starting release from {head.value[:8]}")
    return Ok(StepDone({"original_commit": head.value}))


def _verify_init(ctx: StepContext, state: ReleaseState) -> bool:
    del ctx
    return state.original_commit is not None


# -- show_commits ------------------------------------------------------------


def _show_commits(ctx: StepContext, state: ReleaseState) -> StepResult:
    del state
    last_tag = ctx.vcs.last_tag()
    subjects = ctx.vcs.commit_subjects(last_tag)
    if isinstance(subjects, Err):
        return subjects

    ctx.console.print(f"Commits since {last_tag or 'the beginning'}:", Style.BOLD)
    for subject in subjects.value:
        ctx.console.print(f"- {subject}")

    decision = decide_bump(ctx.config.bump, subjects.value)
    if decision.automatic:
        ctx.console.info(f"bump: {decision.bump} (classified from commits)")
    else:
        ctx.console.info(f"bump: {decision.bump}")
        if decision.overridden:
            ctx.console.print(
                f"commits suggest {decision.detected}; keeping {decision.bump}", Style.DIM
            )
    logger.info("bump %s (detected %s)", decision.bump, decision.detected)

    return Ok(
        StepDone(
            {
                "last_tag": last_tag or "",
                "no_previous_tag": "false" if last_tag else "true",
                "bump_type": decision.bump,
            }
        )
    )


def _verify_show_commits(ctx: StepContext, state: ReleaseState) -> bool:
    del ctx
    has_tag_info = state.last_tag is not None or state.no_previous_tag
    return has_tag_info and state.bump_type is not None


# -- create_changeset --------------------------------------------------------


def _resolve_bump(ctx: StepContext, state: ReleaseState, subjects: list[str]) -> str:
    if state.bump_type:
        return state.bump_type
    return decide_bump(ctx.config.bump, subjects).bump


def _create_changeset(ctx: StepContext, state: ReleaseState) -> StepResult:
    manifest = ctx.manifest()
    if isinstance(manifest, Err):
        return manifest
    subjects = ctx.vcs.commit_subjects(state.last_tag)
    if isinstance(subjects, Err):
        return subjects

    # A re-run replaces the previous changeset instead of stacking a second one.
    if state.changeset_file:
        remove_file(ctx.path(state.changeset_file))

    bump = _resolve_bump(ctx, state, subjects.value)
    path = write_changeset(
        changeset_dir=ctx.config.changeset_dir,
        package=manifest.value.name,
        bump=bump,
        subjects=subjects.value,
    )
    rel_path = ctx.relative(path)
    ctx.console.success(f"created changeset {rel_path} ({bump})")
    return Ok(StepDone({"changeset_file": rel_path, "bump_type": bump}))


def _verify_changeset(ctx: StepContext, state: ReleaseState) -> bool:
    return state.changeset_file is not None and ctx.path(state.changeset_file).is_file()


def _dry_changeset_path(ctx: StepContext, state: ReleaseState) -> dict[str, str]:
    del state
    path = ctx.relative(new_changeset_path(ctx.config.changeset_dir))
    return {"changeset_file": placeholder(path.removesuffix(".md")) + ".md"}


# -- edit_changeset ----------------------------------------------------------


def _edit_changeset(ctx: StepContext, state: ReleaseState) -> StepResult:
    recorded = _require(state.changeset_file, "changeset", from_step="create_changeset")
    if isinstance(recorded, Err):
        return recorded
    path = ctx.path(recorded.value)
    if not path.is_file():
        return Err(
            step_failed(
                f"changeset not found: {recorded.value}",
                hint="Run: rel --from create_changeset",
            )
        )

    if not ctx.config.edit:
        ctx.console.print("changeset editing disabled", Style.DIM)
        return Ok(StepDone())

    ctx.console.info(f"opening {recorded.value} for editing")
    edited = ctx.operator.edit(path)
    if isinstance(edited, Err):
        return edited
    return Ok(StepDone())


def _describe_edit(ctx: StepContext, state: ReleaseState) -> str:
    if not ctx.config.edit:
        return "changeset editing disabled"
    return f"would open {state.changeset_file or 'the changeset'} in $EDITOR"


# -- build -------------------------------------------------------------------


def _build(ctx: StepContext, state: ReleaseState) -> StepResult:
    del state
    ctx.console.info("building")
    built = ctx.builder.build()
    if isinstance(built, Err):
        return built
    return Ok(StepDone())


def _verify_build(ctx: StepContext, state: ReleaseState) -> bool:
    del state
    return ctx.builder.output_exists()


# -- version -----------------------------------------------------------------


def _version(ctx: StepContext, state: ReleaseState) -> StepResult:
    del state
    ctx.console.info("applying changesets")
    applied = ctx.builder.apply_version()
    if isinstance(applied, Err):
        return applied

    manifest = ctx.manifest()
    if isinstance(manifest, Err):
        return manifest
    version = manifest.value.version
    ctx.console.success(f"version {version}")
    return Ok(StepDone({"version": version, "tag": tag_for(version)}))


def _verify_version(ctx: StepContext, state: ReleaseState) -> bool:
    manifest = ctx.manifest()
    if isinstance(manifest, Err) or state.version is None or state.tag is None:
        return False
    if manifest.value.version != state.version:
        return False
    changelog = read_text_or_none(ctx.config.changelog_path)
    return changelog is not None and state.version in changelog


def _project_version(ctx: StepContext, state: ReleaseState) -> dict[str, str]:
    manifest = ctx.manifest()
    current = parse_version(manifest.value.version) if isinstance(manifest, Ok) else None
    bump = state.bump_type if state.bump_type in ("major", "minor", "patch") else "patch"
    projected_bump = cast(ReleaseBump, bump)
    projected = str(current.bump(projected_bump)) if current is not None else "0.0.0"
    version = placeholder(projected)
    return {"version": version, "tag": tag_for(version)}


def _dry_version(ctx: StepContext, state: ReleaseState) -> StepResult:
    values = _project_version(ctx, state)
    announce(ctx, f"would run changeset version (projected {values['version']})")
    return Ok(StepDone(values))


# -- git_commit --------------------------------------------------------------


def _git_commit(ctx: StepContext, state: ReleaseState) -> StepResult:
    version = _require(state.version, "version", from_step="version")
    if isinstance(version, Err):
        return version
    message = release_commit_message(version.value)
    ctx.console.info(f"committing {message}")
    committed = ctx.vcs.commit_all(message)
    if isinstance(committed, Err):
        return committed
    return Ok(StepDone())


def _verify_git_commit(ctx: StepContext, state: ReleaseState) -> bool:
    if state.version is None:
        return False
    message = ctx.vcs.last_commit_message()
    return isinstance(message, Ok) and release_commit_message(state.version) in message.value


# -- npm_publish -------------------------------------------------------------


def _npm_publish(ctx: StepContext, state: ReleaseState) -> StepResult:
    version = _require(state.version, "version", from_step="version")
    if isinstance(version, Err):
        return version
    manifest = ctx.manifest()
    if isinstance(manifest, Err):
        return manifest

    spec = f"{manifest.value.name}@{version.value}"
    if not ctx.config.assume_yes:
        if not ctx.operator.confirm(f"Publish {spec}? This cannot be undone."):
            return Err(step_failed("publish not confirmed", hint="Run rel again, or pass --yes."))

    ctx.console.info(f"publishing {spec}")
    published = ctx.registry.publish()
    if isinstance(published, Err):
        return published
    ctx.console.success(f"published {spec}")
    return Ok(StepDone())


def _verify_npm_publish(ctx: StepContext, state: ReleaseState) -> bool:
    manifest = ctx.manifest()
    if isinstance(manifest, Err) or state.version is None:
        return False
    return ctx.registry.has_version(manifest.value.name, state.version)


# -- git_push ----------------------------------------------------------------


def _git_push(ctx: StepContext, state: ReleaseState) -> StepResult:
    tag = _require(state.tag, "tag", from_step="version")
    if isinstance(tag, Err):
        return tag

    # changeset publish normally creates the tag; make sure it exists.
    if not ctx.vcs.has_local_tag(tag.value):
        created = ctx.vcs.create_tag(tag.value)
        if isinstance(created, Err):
            return created

    ctx.console.info(f"pushing commit and {tag.value}")
    pushed = ctx.vcs.push_with_tags()
    if isinstance(pushed, Err):
        return pushed
    return Ok(StepDone())


def _verify_git_push(ctx: StepContext, state: ReleaseState) -> bool:
    return state.tag is not None and ctx.vcs.remote_has_tag(state.tag)


# -- gh_release --------------------------------------------------------------


def _gh_release(ctx: StepContext, state: ReleaseState) -> StepResult:
    manifest = ctx.manifest()
    slug = manifest.value.repo_slug if isinstance(manifest, Ok) else None
    if slug is None:
        ctx.console.warning("no GitHub repository URL in package.json; skipping release creation")
        return Ok(StepDone())

    auth = ctx.host.authenticated()
    if isinstance(auth, Err):
        ctx.console.warning(f"{auth.error.message}; skipping release creation")
        return Ok(StepDone())

    tag = _require(state.tag, "tag", from_step="version")
    if isinstance(tag, Err):
        return tag

    branch = ctx.config.branch or ctx.vcs.default_branch() or "main"
    footer = f"[Full Changelog](https://github.com/{slug}/blob/{branch}/CHANGELOG.md)"
    ctx.console.info(f"creating GitHub release {tag.value}")
    created = ctx.host.create_release(tag.value, notes_footer=footer)
    if isinstance(created, Err):
        return created
    return Ok(StepDone())


def _verify_gh_release(ctx: StepContext, state: ReleaseState) -> bool:
    return state.tag is not None and ctx.host.release_exists(state.tag)


# -- cleanup -----------------------------------------------------------------


def _released_spec(ctx: StepContext, state: ReleaseState) -> str:
    manifest = ctx.manifest()
    name = manifest.value.name if isinstance(manifest, Ok) else "package"
    return f"{name}@{state.version or '?'}"


def _cleanup(ctx: StepContext, state: ReleaseState) -> StepResult:
    ctx.console.success(f"Released {_released_spec(ctx, state)}")
    return Ok(StepCleared())


def _dry_cleanup(ctx: StepContext, state: ReleaseState) -> StepResult:
    announce(ctx, "would clear the release state")
    ctx.console.success(f"Dry run complete for {_released_spec(ctx, state)}")
    return Ok(StepDone())


def _verify_cleanup(ctx: StepContext, state: ReleaseState) -> bool:
    del state
    return not ctx.config.state_path.is_file()


STEPS: tuple[Step, ...] = (
    Step(
        name="preflight",
        summary="check preconditions (auth, clean tree, commits to release)",
        action=_preflight,
        verify=never_verified,
    ),
    Step(
        name="init",
        summary="record the commit the release starts from",
        action=_init,
        verify=_verify_init,
    ),
    Step(
        name="show_commits",
        summary="list commits since the last tag and pick the bump type",
        action=_show_commits,
        verify=_verify_show_commits,
    ),
    Step(
        name="create_changeset",
        summary="write a changeset with the commit list",
        action=_create_changeset,
        verify=_verify_changeset,
        dry_run=simulate(
            lambda ctx, state: f"would write a {state.bump_type or ctx.config.bump} changeset",
            _dry_changeset_path,
        ),
    ),
    Step(
        name="edit_changeset",
        summary="open the changeset in $EDITOR",
        action=_edit_changeset,
        verify=_verify_changeset,
        dry_run=simulate(_describe_edit),
    ),
    Step(
        name="build",
        summary="build the package",
        action=_build,
        verify=_verify_build,
        dry_run=simulate(lambda ctx, state: "would run the build"),
    ),
    Step(
        name="version",
        summary="apply changesets (bump version, update CHANGELOG.md)",
        action=_version,
        verify=_verify_version,
        dry_run=_dry_version,
    ),
    Step(
        name="git_commit",
        summary="commit the release",
        action=_git_commit,
        verify=_verify_git_commit,
        dry_run=simulate(
            lambda ctx, state: f"would commit '{release_commit_message(state.version or '?')}'"
        ),
    ),
    Step(
        name="npm_publish",
        summary="publish to the registry (irreversible, asks for confirmation)",
        action=_npm_publish,
        verify=_verify_npm_publish,
        dry_run=simulate(lambda ctx, state: f"would publish {_released_spec(ctx, state)}"),
    ),
    Step(
        name="git_push",
        summary="push the release commit and tag",
        action=_git_push,
        verify=_verify_git_push,
        dry_run=simulate(lambda ctx, state: f"would push the commit and {state.tag or 'the tag'}"),
    ),
    Step(
        name="gh_release",
        summary="create the GitHub release",
        action=_gh_release,
        verify=_verify_gh_release,
        dry_run=simulate(
            lambda ctx, state: f"would create GitHub release {state.tag or '(no tag)'}"
        ),
    ),
    Step(
        name="cleanup",
        summary="clear the release state",
        action=_cleanup,
        verify=_verify_cleanup,
        dry_run=_dry_cleanup,
    ),
)

STEP_NAMES: tuple[str, ...] = tuple(s.name for s in STEPS)
