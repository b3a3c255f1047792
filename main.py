# --- Main Execution ---
import sys

if __name__ == '__main__':
    try:
        from surfacegraph.app import main
    except ImportError as e:
        print(f"\nError: Library not found. {e}\n"
              f"Please ensure Pygame, PyOpenGL, numpy, asteval, and imgui[pygame] are installed.\n"
              f"Install command: pip install -e .")
        sys.exit(1)
    main()
