"""
Copy engine infrastructure for imagesync.

Image transfer is delegated to ``skopeo copy``. This client only turns an
image reference pair plus execution contexts into a command line, runs it
and reports failures. It never retries or inspects the copied content.
"""

import logging
import subprocess
from typing import List, Optional

from ..domain.context import ExecutionContext
from ..domain.reference import ImageReference

logger = logging.getLogger(__name__)


class CopyEngineError(Exception):
    """The copy engine failed to transfer an image."""

    def __init__(self, message: str, returncode: Optional[int] = None, stderr: str = ""):
        super().__init__(message)
        self.returncode = returncode
        self.stderr = stderr


class CopyEngineTimeout(CopyEngineError):
    """The copy engine did not finish within the allowed time."""


def context_flags(prefix: str, context: ExecutionContext) -> List[str]:
    """
    Command-line flags for one side of a copy.

    Args:
        prefix: ``src`` or ``dest``
        context: Settings for that side
    """
    flags = []
    if context.credentials and not context.credentials.is_empty:
        flags.append(f"--{prefix}-creds={context.credentials.to_flag()}")
    if context.no_creds:
        flags.append(f"--{prefix}-no-creds")
    if context.registry_token:
        flags.append(f"--{prefix}-registry-token={context.registry_token}")
    if context.auth_file:
        flags.append(f"--{prefix}-authfile={context.auth_file}")
    if context.cert_dir:
        flags.append(f"--{prefix}-cert-dir={context.cert_dir}")
    verify = context.tls_verify.to_flag()
    if verify is not None:
        flags.append(f"--{prefix}-tls-verify={'true' if verify else 'false'}")
    return flags


def _redact(cmd: List[str]) -> str:
    redacted = []
    for arg in cmd:
        name, sep, _ = arg.partition('=')
        if sep and name.endswith(('-creds', '-registry-token')):
            arg = f"{name}=***"
        redacted.append(arg)
    return ' '.join(redacted)


class SkopeoClient:
    """
    Abstraction over ``skopeo copy``.

    Example:
        engine = SkopeoClient()
        engine.copy(src_ref, dest_ref, ExecutionContext(), ExecutionContext())
    """

    def __init__(
        self,
        binary: str = "skopeo",
        policy: Optional[str] = None,
        insecure_policy: bool = False,
        retry_times: int = 0,
        debug: bool = False,
    ):
        """
        Initialize SkopeoClient.

        Args:
            binary: skopeo executable
            policy: Signature policy file passed through to skopeo
            insecure_policy: Run without any signature policy
            retry_times: Value for ``--retry-times`` (0 leaves it unset)
            debug: Pass ``--debug`` to skopeo
        """
        self.binary = binary
        self.policy = policy
        self.insecure_policy = insecure_policy
        self.retry_times = retry_times
        self.debug = debug

    def build_copy_command(
        self,
        source: ImageReference,
        destination: ImageReference,
        source_context: ExecutionContext,
        destination_context: ExecutionContext,
        remove_signatures: bool = False,
        sign_by: Optional[str] = None,
    ) -> List[str]:
        cmd = [self.binary]
        if self.debug:
            cmd.append('--debug')
        if self.policy:
            cmd.append(f"--policy={self.policy}")
        if self.insecure_policy:
            cmd.append('--insecure-policy')

        cmd.append('copy')
        if self.retry_times:
            cmd.append(f"--retry-times={self.retry_times}")
        if remove_signatures:
            cmd.append('--remove-signatures')
        if sign_by:
            cmd.append(f"--sign-by={sign_by}")
        cmd.extend(context_flags('src', source_context))
        cmd.extend(context_flags('dest', destination_context))
        cmd.append(source.image_name())
        cmd.append(destination.image_name())
        return cmd

    def copy(
        self,
        source: ImageReference,
        destination: ImageReference,
        source_context: ExecutionContext,
        destination_context: ExecutionContext,
        remove_signatures: bool = False,
        sign_by: Optional[str] = None,
        timeout: Optional[float] = None,
    ) -> str:
        """
        Copy one image.

        Returns:
            skopeo's standard output (progress report)

        Raises:
            CopyEngineTimeout: If ``timeout`` expires
            CopyEngineError: If skopeo is missing or exits non-zero
        """
        cmd = self.build_copy_command(
            source, destination, source_context, destination_context,
            remove_signatures=remove_signatures, sign_by=sign_by,
        )
        logger.debug(f"Running: {_redact(cmd)}")

        try:
            result = subprocess.run(cmd, capture_output=True, text=True, timeout=timeout)
        except subprocess.TimeoutExpired as e:
            raise CopyEngineTimeout(
                f"copy of {source.image_name()} timed out after {e.timeout}s"
            ) from e
        except FileNotFoundError as e:
            raise CopyEngineError(f"copy engine {self.binary!r} not found") from e

        if result.returncode != 0:
            stderr = (result.stderr or '').strip()
            raise CopyEngineError(
                stderr or f"{self.binary} exited with status {result.returncode}",
                returncode=result.returncode,
                stderr=stderr,
            )

        for line in (result.stdout or '').splitlines():
            logger.debug(line)
        return result.stdout or ''
