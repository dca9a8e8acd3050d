"""Pure domain types for the quote kernel: clock, tenant context, enums and DTOs."""
