"""Main entry point for ecd_web"""

import sys

from ecd_web.config import WEB_HOST, WEB_PORT


def main() -> int:
    """Main entry point"""
    if len(sys.argv) > 1 and sys.argv[1].lower() in ['--help', '-h', 'help']:
        print("ecd-web - HTTP API for e-CD customs declaration automation")
        print()
        print("Usage:")
        print("  ecd-web                Start server")
        print("  ecd-web --help         Show this help")
        print()
        print("Environment variables:")
        print("  ECD_WEB_PORT           Server port (default: 8000)")
        print("  ECD_WEB_HOST           Server host (default: 0.0.0.0)")
        print("  ECD_HEADLESS           Run the browser headless (default: true)")
        print("  ECD_DEBUG              Enable debug logging (default: false)")
        return 0
    if len(sys.argv) > 1:
        print(f"❌ Unknown command: {sys.argv[1]}")
        print("   Use 'ecd-web --help' for usage")
        return 1

    from ecd_web.app import app
    print(f"🚀 e-CD automation API on http://{WEB_HOST}:{WEB_PORT}")
    app.run(host=WEB_HOST, port=WEB_PORT, threaded=True)
    return 0


if __name__ == '__main__':
    sys.exit(main())
