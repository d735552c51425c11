import argparse

import uvicorn


def main() -> None:
    """Entry point for the proxy server."""
    parser = argparse.ArgumentParser(prog="openai-proxy")
    parser.add_argument("--port", type=int, default=8080, help="Port to listen on")
    args = parser.parse_args()

    uvicorn.run("openai_proxy.main:app", host="0.0.0.0", port=args.port)


if __name__ == "__main__":
    main()
