import sys
import logging
import argparse
from tagmark import create_app

log = logging.getLogger('werkzeug')
log.disabled = True
cli = sys.modules['flask.cli']
cli.show_server_banner = lambda *x: None

app = create_app()

def main() -> None:
    p = argparse.ArgumentParser(prog="tagmark")
    p.add_argument("--host", default="0.0.0.0")
    p.add_argument("--port", type=int, default=8073)
    p.add_argument("--debug", action="store_true")
    args = p.parse_args()

    app.logger.info("Tagmark starting on http://%s:%s", args.host, args.port)
    print(f"Tagmark starting on http://{args.host}:{args.port}", flush=True)
    app.run(host=args.host, port=args.port, debug=args.debug)

if __name__ == "__main__":
    main()
