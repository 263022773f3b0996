import argparse
import logging
import signal
import sys

from sftpgateway.adapters.database import create_tables
from sftpgateway.config import GatewayConfig
from sftpgateway.exceptions import ConfigError
from sftpgateway.factory import Backends
from sftpgateway.transport import GatewayServer, load_or_create_host_key

logger = logging.getLogger(__name__)


def parse_args(argv=None):
    parser = argparse.ArgumentParser(
        description='An SFTP gateway exposing a pricelist and an order inbox '
                    'backed by remote storage.'
    )

    parser.add_argument('--host', dest='host',
                        help='the address to listen on')
    parser.add_argument('--port', '-p', dest='port', type=int,
                        help='the port to listen on')
    parser.add_argument('--host-key', '-k', dest='host_key_path',
                        help='path to the RSA host key, created if missing')
    parser.add_argument('--logfile', '-l', dest='logfile',
                        help='path to the logfile')
    parser.add_argument('--log-level', dest='log_level',
                        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
                        help='logging level')
    parser.add_argument('--mock-fallback', dest='mock_fallback',
                        action='store_true', default=None,
                        help='serve mock data when a backend is unavailable')
    parser.add_argument('--env-file', dest='env_file',
                        help='load environment variables from this file')
    parser.add_argument('--create-tables', dest='create_tables',
                        action='store_true',
                        help='create the database tables and exit')

    return parser.parse_args(argv)


def load_config(args):
    config = GatewayConfig.from_env(env_file=args.env_file)
    for name in ('host', 'port', 'host_key_path', 'logfile', 'log_level',
                 'mock_fallback'):
        value = getattr(args, name)
        if value is not None:
            setattr(config, name, value)
    return config.validate()


def setup_logging(config):
    handlers = [logging.StreamHandler()]
    if config.logfile:
        handlers.append(logging.FileHandler(config.logfile))
    logging.basicConfig(
        level=getattr(logging, config.log_level.upper(), logging.INFO),
        format='%(asctime)s - %(levelname)s - %(message)s',
        handlers=handlers
    )


def main(argv=None):
    args = parse_args(argv)
    try:
        config = load_config(args)
    except ConfigError as e:
        sys.exit('configuration error: %s' % e)

    setup_logging(config)
    backends = Backends(config)

    if args.create_tables:
        if not config.database_url:
            sys.exit('configuration error: DATABASE_URL is required')
        create_tables(backends.engine)
        logger.info("Database tables created")
        return

    server = GatewayServer(
        config.host,
        config.port,
        load_or_create_host_key(config.host_key_path),
        backends.build_authenticator(),
        backends.build_pricelist_storage(),
        backends.build_incoming_storage(),
        backends.build_policy(),
        **backends.storage_options()
    )

    def shutdown(signum, frame):
        logger.info("Received signal %d, shutting down", signum)
        server.stop()

    signal.signal(signal.SIGINT, shutdown)
    signal.signal(signal.SIGTERM, shutdown)

    server.serve_forever()
    logger.info("SFTP gateway stopped")


if __name__ == '__main__':
    main()
