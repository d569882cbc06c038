from enum import Enum

from protocol.errors import ClientError
from protocol.transfer import FileTransfer
from utils.logs import get_logger

logger = get_logger(__name__)


class MenuOption(Enum):
    REGISTER = ("1", False, "Register", "Successfully registered on server.")
    SEND_PUBLIC_KEY = ("2", True, "Send public key", "Public key was sent successfully.")
    SEND_FILE = ("3", True, "Send encrypted file",
                 "Encrypted file was sent successfully. CRC validated with server.")
    EXIT = ("0", False, "Exit client", "")

    def __init__(self, key, requires_registration, description, success):
        self.key = key
        self.requires_registration = requires_registration
        self.description = description
        self.success = success

    @classmethod
    def from_input(cls, text):
        for option in cls:
            if option.key == text.strip():
                return option
        return None


class Client:
    """Text menu on top of a Session. Each option maps to one session operation."""

    def __init__(self, session, transfer_info, input_func=input, output_func=print):
        self.session = session
        self.transfer_info = transfer_info
        self.transfer = FileTransfer(session)
        self.input = input_func
        self.output = output_func

    def display(self):
        if self.session.registered:
            self.output(f"Hello {self.session.identity.username}")
        self.output("*** Encrypted File Transfer ***\n\nChoose an option from the menu below:\n")
        for option in MenuOption:
            self.output(f"{option.key:>2}) {option.description}")

    def handle(self, option):
        """
        Run one menu option.

        Returns:
            bool: False when the client should exit
        """
        if option is MenuOption.EXIT:
            self.output("Client will now exit.")
            return False
        if option.requires_registration and not self.session.registered:
            self.output("You must register first!")
            return True

        try:
            if option is MenuOption.REGISTER:
                self.session.register(self.transfer_info.username)
            elif option is MenuOption.SEND_PUBLIC_KEY:
                self.session.send_public_key()
            elif option is MenuOption.SEND_FILE:
                self.transfer.send(self.transfer_info.file_path)
        except ClientError as e:
            logger.error(f"{option.description} failed: {e}")
            self.output(str(e))
            return True

        self.output(option.success)
        return True

    def run_cli(self):
        while True:
            try:
                self.display()
                option = MenuOption.from_input(self.input(">>> "))
                if option is None:
                    self.output("Invalid input. Please try again..")
                    continue
                if not self.handle(option):
                    break
            except (KeyboardInterrupt, EOFError):
                logger.debug("CLI interrupted by user")
                self.output("\nInterrupted. Exiting")
                break
