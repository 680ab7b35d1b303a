"""Tests for CLI UX module - styling and interactive prompts."""

from unittest.mock import patch

import pytest


class TestEnvironmentDetection:
    """Test environment detection functions."""

    def test_is_interactive_in_ci(self):
        """_is_interactive returns False when CI env var is set."""
        from tenantctl.cli.ux import _is_interactive

        with patch.dict("os.environ", {"CI": "true"}, clear=True):
            assert _is_interactive() is False

    def test_is_interactive_in_github_actions(self):
        """_is_interactive returns False in GitHub Actions."""
        from tenantctl.cli.ux import _is_interactive

        with patch.dict("os.environ", {"GITHUB_ACTIONS": "true"}, clear=True):
            assert _is_interactive() is False

    def test_is_interactive_with_tty(self):
        """_is_interactive returns True when stdout is TTY and not CI."""
        from tenantctl.cli.ux import _is_interactive

        with patch.dict("os.environ", {}, clear=True):
            with patch("sys.stdout") as mock_stdout:
                mock_stdout.isatty.return_value = True
                assert _is_interactive() is True


class TestOutput:
    """Output helpers render without raising."""

    def test_status_lines(self):
        from tenantctl.cli.ux import error, header, info, success, warning

        success("done")
        error("failed")
        warning("careful")
        info("note")
        header("Deploying tenant acme")

    def test_print_table_and_key_value(self):
        from tenantctl.cli.ux import print_key_value, print_table

        print_table("Tenants", ["Tenant", "Variables file"], [["acme", "tenants/acme.tfvars"]])
        print_key_value({"Load balancer": "acme-lb"}, title="Outputs")

    def test_spinner_context_manager(self):
        from tenantctl.cli.ux import spinner

        with spinner("Applying..."):
            pass


class TestPrompts:
    """Prompts go through questionary and propagate Ctrl-C."""

    @patch("questionary.text")
    def test_text_input_strips(self, mock_text):
        from tenantctl.cli.ux import text_input

        mock_text.return_value.unsafe_ask.return_value = "  acme  "

        assert text_input("Tenant:") == "acme"

    @patch("questionary.text")
    def test_text_input_default_on_empty(self, mock_text):
        from tenantctl.cli.ux import text_input

        mock_text.return_value.unsafe_ask.return_value = ""

        assert text_input("Region:", default="us-east-1") == "us-east-1"

    @patch("questionary.text")
    def test_text_input_interrupt_propagates(self, mock_text):
        """Ctrl-C is never turned into an answer."""
        from tenantctl.cli.ux import text_input

        mock_text.return_value.unsafe_ask.side_effect = KeyboardInterrupt

        with pytest.raises(KeyboardInterrupt):
            text_input("Type the tenant slug:")

    @patch("questionary.password")
    def test_password_input(self, mock_password):
        from tenantctl.cli.ux import password_input

        mock_password.return_value.unsafe_ask.return_value = None

        assert password_input("Database password:") == ""

