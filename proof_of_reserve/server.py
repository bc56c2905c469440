"""
Proof of Reserve Server
=======================

Serves the reserve Merkle root, per-user inclusion paths and a debugging
diagram over a tree that is built once when the application is created.
"""

import logging
import os
from datetime import datetime, timezone
from typing import Iterable, Optional

from flask import Flask, Response, jsonify
from flask.typing import ResponseReturnValue
from werkzeug.exceptions import BadRequest, HTTPException, NotFound

from proof_of_reserve.core.merkle import (
    DEFAULT_BRANCH_TAG,
    DEFAULT_LEAF_TAG,
    EmptyTreeError,
    MerkleTree,
    RecordNotFoundError,
)
from proof_of_reserve.core.models import (
    DEFAULT_RECORDS,
    MalformedIdentifier,
    UserRecord,
    load_records,
    parse_user_id,
)
from proof_of_reserve.visualize import render_mermaid

logger = logging.getLogger(__name__)


class EmptyTree(NotFound):
    """404 raised when the served tree holds no records."""
    code = 404
    description = "Merkle tree is empty"


def build_tree_from_config(config, records: Optional[Iterable[UserRecord]] = None) -> MerkleTree:
    """Build the served tree from application config.

    Explicit ``records`` win over ``RECORDS_FILE``; with neither, the default
    bootstrap records are used.
    """
    if records is None:
        records_file = config.get('RECORDS_FILE')
        records = load_records(records_file) if records_file else DEFAULT_RECORDS
    return MerkleTree.build(config['LEAF_TAG'], config['BRANCH_TAG'], list(records))


def create_app(test_config=None, records: Optional[Iterable[UserRecord]] = None) -> Flask:
    """Create and configure the Flask application.

    Args:
        test_config: Optional mapping overriding the configuration
        records: Optional records to commit to instead of ``RECORDS_FILE``

    Returns:
        Configured Flask application
    """
    app = Flask(__name__)
    app.config.from_mapping(
        LEAF_TAG=DEFAULT_LEAF_TAG,
        BRANCH_TAG=DEFAULT_BRANCH_TAG,
        RECORDS_FILE=None,
    )
    app.config.from_prefixed_env(prefix='POR', loads=str)

    # Apply test config if provided
    if test_config is not None:
        app.config.update(test_config)

    tree = build_tree_from_config(app.config, records)
    app.extensions['merkle_tree'] = tree
    logger.info("Serving Merkle tree over %d records, root %s", tree.size, tree.root())

    @app.route('/health', methods=['GET'])
    def health() -> ResponseReturnValue:
        """Health check endpoint."""
        return jsonify({
            'status': 'healthy',
            'timestamp': datetime.now(timezone.utc).isoformat(),
            'tree_size': tree.size,
            'merkle_root': tree.root(),
        })

    @app.route('/proof', methods=['GET'])
    def proof_all_users() -> ResponseReturnValue:
        """Get the Merkle root hash."""
        root = tree.root()
        if root is None:
            raise EmptyTree()
        return Response(root, mimetype='text/plain')

    @app.route('/proof/mermaid', methods=['GET'])
    def proof_mermaid_diagram() -> ResponseReturnValue:
        """Render the tree as a Mermaid diagram."""
        return Response(render_mermaid(tree), mimetype='text/plain')

    @app.route('/proof/<user_id>', methods=['GET'])
    def proof_by_user_id(user_id: str) -> ResponseReturnValue:
        """Get the inclusion path for a user."""
        try:
            parsed_id = parse_user_id(user_id)
        except MalformedIdentifier as e:
            raise BadRequest(str(e))

        try:
            proof = tree.get_proof(parsed_id)
        except EmptyTreeError:
            raise EmptyTree()
        except RecordNotFoundError as e:
            raise NotFound(str(e))

        return jsonify(proof.model_dump())

    # Error handlers
    @app.errorhandler(EmptyTree)
    def empty_tree(error: HTTPException) -> ResponseReturnValue:
        return jsonify({
            'error': 'empty_tree',
            'message': error.description
        }), 404

    @app.errorhandler(400)
    def bad_request(error: HTTPException) -> ResponseReturnValue:
        return jsonify({
            'error': 'bad_request',
            'message': error.description
        }), 400

    @app.errorhandler(404)
    def not_found(error: HTTPException) -> ResponseReturnValue:
        return jsonify({
            'error': 'not_found',
            'message': error.description
        }), 404

    @app.errorhandler(500)
    def internal_error(error: HTTPException) -> ResponseReturnValue:
        return jsonify({
            'error': 'internal_server_error',
            'message': 'An internal server error occurred'
        }), 500

    return app


def run_server(host: str = '0.0.0.0', port: int = 8000, debug: bool = False,
               records_file: Optional[str] = None) -> None:
    """Run the proof of reserve server.

    Args:
        host: Host to bind to
        port: Port to listen on
        debug: Enable debug mode
        records_file: Optional JSON file with the records to commit to
    """
    test_config = {'RECORDS_FILE': records_file} if records_file else None
    app = create_app(test_config)
    app.run(host=host, port=port, debug=debug)


def main() -> None:
    import argparse

    parser = argparse.ArgumentParser(description='Proof of Reserve Server')
    parser.add_argument('--host', default='0.0.0.0', help='Host to bind to')
    parser.add_argument('--port', type=int, default=int(os.environ.get('PORT', 8000)),
                        help='Port to listen on')
    parser.add_argument('--records', help='JSON file with the records to commit to')
    parser.add_argument('--debug', action='store_true', help='Enable debug mode')

    args = parser.parse_args()

    logging.basicConfig(level=logging.DEBUG if args.debug else logging.INFO)
    logger.info("Starting proof of reserve server on %s:%d", args.host, args.port)

    run_server(host=args.host, port=args.port, debug=args.debug, records_file=args.records)


if __name__ == '__main__':
    main()
