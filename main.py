#main.py  ==  encrypted file transfer client
           #↳ reads config.yaml and transfer.info
           #↳ restores a saved identity from me.info
           #↳ runs the menu: register, send public key, send file

import sys

from client.client import Client
from config import load_config, parse_transfer_info
from crypto.identity import IdentityStore
from crypto.provider import CryptoProvider
from protocol.errors import ClientError, ClientIOError, CryptoError, InvalidInputError
from protocol.session import Session
from protocol.transport import SocketTransport
from utils.logs import get_logger, set_level

logger = get_logger(__name__)


def main(config_path="config.yaml"):
    try:
        config = load_config(config_path)
        set_level(config["log_level"])
        info = parse_transfer_info(config["transfer_info"])
        crypto = CryptoProvider()
        session = Session(
            SocketTransport(info.host, info.port, timeout=config["socket_timeout"]),
            crypto,
            IdentityStore(config["client_info"], crypto),
            max_retries=config["max_retries"])
    except (ClientError, ValueError) as e:
        print(f"Fatal Error: {e}\nClient will stop.")
        return 1

    try:
        session.restore()
    except (InvalidInputError, CryptoError, ClientIOError) as e:
        # Registering again overwrites the damaged file.
        logger.warning(f"Ignoring stored identity: {e}")
        print(f"Couldn't load {config['client_info']}: {e}\nPlease register again.")

    Client(session, info).run_cli()
    return 0


if __name__ == "__main__":
    sys.exit(main(*sys.argv[1:2]))
