"""
Batch job resolution: one templated source/target pair -> many concrete jobs.

The placeholder token stands for a value of exactly the token's width, e.g.
"book-##.cbz" with token "##" matches book-01.cbz but not book-1.cbz.
"""

import glob
import logging
import os
import re

from .config import ConversionSettings, Job
from .errors import ConfigurationError, PatternMatchError

logger = logging.getLogger(__name__)


def _split_template(template, token, label):
    if not token:
        raise ConfigurationError("placeholder token must not be empty")
    if token not in template:
        raise ConfigurationError(f"{label} template '{template}' does not contain placeholder '{token}'")
    return template.split(token)


def derive_glob(template, token):
    """Glob pattern: literal parts escaped, each token replaced by len(token) '?' wildcards."""
    parts = _split_template(template, token, "source")
    wildcard = "?" * len(token)
    return wildcard.join(glob.escape(part) for part in parts)


def derive_regex(template, token):
    """
    Compiled regex for the same template. The first token becomes a capture
    group of exactly len(token) characters, later occurrences must repeat it.
    """
    parts = _split_template(template, token, "source")
    pattern = re.escape(parts[0])
    for idx, part in enumerate(parts[1:]):
        pattern += f"(.{{{len(token)}}})" if idx == 0 else r"\1"
        pattern += re.escape(part)
    return re.compile(pattern, re.DOTALL)


def resolve_jobs(source_template, target_template, token, settings=None):
    """
    Expand a templated source/target pair into Jobs, one per matching file,
    ordered by source path.
    """
    # both templates are checked before touching the filesystem
    _split_template(source_template, token, "source")
    _split_template(target_template, token, "target")
    settings = settings or ConversionSettings()

    pattern = derive_glob(source_template, token)
    regex = derive_regex(source_template, token)
    logger.debug("Resolving %s (glob %s, regex %s)", source_template, pattern, regex.pattern)

    matches = sorted(p for p in glob.glob(pattern, include_hidden=True) if os.path.isfile(p))

    jobs = []
    for path in matches:
        m = regex.fullmatch(path)
        if not m:
            raise PatternMatchError(
                f"'{path}' matched glob '{pattern}' but not regex '{regex.pattern}'"
            )
        value = m.group(1)
        target = target_template.replace(token, value)
        jobs.append(Job(source=path, target=target, settings=settings))
        logger.debug("  %s = %r -> %s", token, value, target)

    logger.info("Resolved %d job(s) from %s", len(jobs), source_template)
    return jobs
