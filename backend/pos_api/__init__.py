"""Table-service POS engine: order lifecycle, coupons and payment settlement."""
