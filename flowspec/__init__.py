"""flowspec: Power Automate package analysis and durable spec review workflow."""
