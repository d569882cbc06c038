import os

from protocol.errors import IntegrityFailure
from protocol.file_handler import file_crc
from protocol.session import SessionState
from utils.logs import get_logger

logger = get_logger(__name__)


class FileTransfer:
    """
    Uploads a file and runs the CRC confirm/retry loop until the server
    accepts it or the session aborts the transfer.

    If confirm_crc fails (for instance the connection drops) the upload stays
    unconfirmed in the session. The next send() of the same file finishes that
    confirmation before uploading again.
    """

    def __init__(self, session):
        self.session = session
        self._unconfirmed = None  # (FileAccepted, crc matched)

    def send(self, path):
        local_crc = file_crc(path)
        logger.debug(f"Local CRC of '{path}': {local_crc:#010x}")

        while True:
            if self._resumable(path):
                accepted, match = self._unconfirmed
                logger.info(f"Resuming CRC confirmation of '{accepted.filename}'")
            else:
                accepted = self.session.send_file(path)
                logger.debug(
                    f"Attempt {self.session.attempts}: server CRC {accepted.crc:#010x}")
                match = accepted.crc == local_crc
                self._unconfirmed = (accepted, match)

            state = self.session.confirm_crc(match)
            self._unconfirmed = None

            if state is SessionState.FILE_ACCEPTED:
                return accepted
            if state is SessionState.ABORTED:
                raise IntegrityFailure(
                    f"CRC validation of '{accepted.filename}' failed "
                    f"{self.session.attempts} times. Transfer aborted.",
                    self.session.attempts)
            logger.info(
                f"CRC validation with server failed. Retrying "
                f"{self.session.retry_budget + 1} more times.")

    def _resumable(self, path):
        return (self._unconfirmed is not None
                and self.session.awaiting_confirmation
                and self._unconfirmed[0].filename == os.path.basename(path))
